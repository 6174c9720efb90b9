"""Deterministic offline responder: the last link of every provider chain."""

from typing import Sequence, Tuple

# (keywords, canned reply), checked in order
CANNED_REPLIES: Sequence[Tuple[Tuple[str, ...], str]] = (
    (
        ("科技", "ai", "人工智能"),
        "作为一个科技专家，我认为人工智能的发展正在改变我们的生活方式。从机器学习到深度学习，"
        "技术的进步让我们能够解决更复杂的问题。不过，我们也要注意技术发展带来的伦理问题，"
        "确保AI的发展能够造福人类。",
    ),
    (
        ("心理", "情绪", "情感"),
        "从心理咨询的角度来看，情绪管理是每个人都需要学习的重要技能。我建议您可以通过冥想、"
        "运动或者与朋友交流来调节情绪。记住，寻求帮助是勇敢的表现，不要独自承受压力。",
    ),
    (
        ("创业", "商业", "投资"),
        "作为一名创业者，我想说的是，创业不仅仅是有一个好点子，更重要的是执行力。市场验证、"
        "团队建设、资金管理，每一个环节都很关键。我的建议是：从小处着手，快速迭代，不断学习和调整。",
    ),
    (
        ("艺术", "文化", "文学"),
        "艺术是人类情感的表达，通过不同的艺术形式，我们能够传达内心深处的感受。无论是绘画、"
        "音乐还是文学，每一种艺术形式都有其独特的魅力。我鼓励大家多接触艺术，丰富自己的精神世界。",
    ),
)

GENERIC_REPLY = (
    "这是一个很有趣的话题！我认为每个问题都有多个角度值得探讨。从我的经验来看，"
    "重要的是保持开放的心态，不断学习和思考。您对这个话题有什么特别的看法吗？"
)


class OfflineResponder:
    """Pattern-matches broad topic keywords against canned paragraphs. Never raises."""

    provider_name = "offline"

    def __init__(
        self,
        replies: Sequence[Tuple[Tuple[str, ...], str]] = CANNED_REPLIES,
        generic_reply: str = GENERIC_REPLY,
    ):
        self.replies = replies
        self.generic_reply = generic_reply

    def respond(self, prompt: str) -> str:
        lowered = (prompt or "").lower()
        for keywords, reply in self.replies:
            if any(keyword in lowered for keyword in keywords):
                return reply
        return self.generic_reply

    __call__ = respond
