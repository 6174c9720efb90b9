"""
Interest Evaluator

Decides how interested a character is in a topic and whether it should
speak. Evaluation walks a fixed ladder and always produces a result:

1. no memory bank -> neutral score with a coin-flip decision
2. demo mode (placeholder Z.AI key) -> keyword bands, no network
3. primary provider (Z.AI), then OpenAI when a real key is configured,
   both asked for a JSON verdict
4. degraded rule-based estimate from the character's participation level

A model's own participation verdict is ignored; `should_participate` is
always recomputed locally from the score and the character's threshold.
"""

import logging
import math
import random
from typing import Callable, List, Optional, Tuple

import httpx

from roundtable_engine.config.models import (
    ApiCredentials,
    CharacterProfile,
    OpenAIProviderConfig,
    SystemConfig,
    ZAIProviderConfig,
)
from roundtable_engine.llm.client import create_llm_client
from roundtable_engine.models.chat import InterestEvaluation
from roundtable_engine.models.memory_bank import MemoryBank
from roundtable_engine.repositories.memory_bank_repository import MemoryStoreError
from roundtable_engine.services.json_extraction import extract_json_object
from roundtable_engine.services.memory_bank_manager import MemoryBankManager
from roundtable_engine.services.provider_chain import ProviderChain, ProviderStep

logger = logging.getLogger(__name__)

EVALUATION_SYSTEM_PROMPT = "你是一个专业的角色兴趣度评估专家。"

UNINITIALIZED_REASON = "角色尚未初始化记忆"
FALLBACK_REASON = "基于规则的降级评估"


class DomainRule:
    """Demo-mode keyword band for one professional domain."""

    HIGH_BAND = (0.8, 1.0)
    ADJACENT_BAND = (0.6, 0.9)
    HIGH_REASON = "话题与专业领域高度相关，非常感兴趣"

    def __init__(
        self,
        name_keywords: Tuple[str, ...],
        core_topics: Tuple[str, ...],
        adjacent_topics: Tuple[str, ...],
        adjacent_reason: str,
    ):
        self.name_keywords = name_keywords
        self.core_topics = core_topics
        self.adjacent_topics = adjacent_topics
        self.adjacent_reason = adjacent_reason

    def applies_to(self, name: str) -> bool:
        return any(keyword in name for keyword in self.name_keywords)

    def band_for(self, topic: str) -> Optional[Tuple[Tuple[float, float], str]]:
        if any(keyword in topic for keyword in self.core_topics):
            return self.HIGH_BAND, self.HIGH_REASON
        if any(keyword in topic for keyword in self.adjacent_topics):
            return self.ADJACENT_BAND, self.adjacent_reason
        return None


DEMO_DOMAIN_RULES: List[DomainRule] = [
    DomainRule(("科技", "ai", "专家"), ("科技", "ai", "人工智能"), ("未来", "创新"),
               "话题与科技发展趋势相关，很感兴趣"),
    DomainRule(("心理", "咨询"), ("心理", "情绪", "情感"), ("人生", "成长"),
               "话题与个人成长相关，很感兴趣"),
    DomainRule(("创业", "商业", "导师"), ("创业", "商业", "投资"), ("职业", "管理"),
               "话题与职业发展相关，很感兴趣"),
    DomainRule(("艺术", "文艺", "文化"), ("艺术", "文化", "文学"), ("创意", "设计"),
               "话题与创意表达相关，很感兴趣"),
]

DEMO_DEFAULT_BAND = (0.3, 0.8)
DEMO_DEFAULT_REASON = "对该话题有一定兴趣，愿意参与讨论"


def parse_evaluation_reply(text: str) -> Tuple[float, str]:
    """
    Pull (score, reason) out of a model's JSON verdict.

    Raises:
        ValueError: If no JSON object or no numeric score is present
    """
    data = extract_json_object(text)
    if data is None:
        raise ValueError("no JSON object in evaluation reply")

    try:
        score = float(data["score"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"missing or non-numeric score: {e}") from e
    if math.isnan(score):
        raise ValueError("score is NaN")

    reason = data.get("reason")
    return min(1.0, max(0.0, score)), str(reason) if reason else ""


class InterestEvaluator:
    """Scores a character's interest in a topic. Never raises."""

    def __init__(
        self,
        memory_manager: MemoryBankManager,
        credentials: ApiCredentials,
        system_config: Optional[SystemConfig] = None,
        client_factory: Callable = create_llm_client,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize evaluator.

        Args:
            memory_manager: Memory bank access
            credentials: Resolved provider credentials
            system_config: System configuration (defaults when omitted)
            client_factory: Builds LLM clients from provider configs
            transport: Optional httpx transport handed to every client
            rng: Random source for demo bands, coin flips and fallback scores
        """
        self.memory_manager = memory_manager
        self.credentials = credentials
        self.system_config = system_config or SystemConfig()
        self.client_factory = client_factory
        self.transport = transport
        self.rng = rng or random.Random()

    async def evaluate_interest(
        self,
        character: CharacterProfile,
        topic: str,
        context: str,
    ) -> InterestEvaluation:
        """
        Evaluate a character's interest in a topic.

        Args:
            character: Character being evaluated
            topic: Topic under discussion (usually the raw message)
            context: Recent conversation rendered as text

        Returns:
            InterestEvaluation with score in [0, 1]
        """
        try:
            bank = await self.memory_manager.get_memory_bank(character.id)
        except MemoryStoreError as e:
            logger.error(f"Could not read memory bank for {character.id}: {e}")
            bank = None

        if bank is None:
            return InterestEvaluation(
                score=0.5,
                reason=UNINITIALIZED_REASON,
                should_participate=self.rng.random() > 0.5,
                source="uninitialized",
            )

        if self.credentials.demo_mode:
            return self._demo_evaluation(character, topic)

        try:
            evaluation = await self._model_evaluation(character, bank, topic, context)
        except Exception as e:
            logger.error(f"Interest evaluation failed for {character.id}: {e}", exc_info=True)
            evaluation = None

        if evaluation is not None:
            return evaluation
        return self._fallback_evaluation(character)

    def _demo_evaluation(self, character: CharacterProfile, topic: str) -> InterestEvaluation:
        name = character.name.lower()
        topic_lower = topic.lower()

        # Later rules override earlier ones when several domains match
        band, reason = DEMO_DEFAULT_BAND, DEMO_DEFAULT_REASON
        for rule in DEMO_DOMAIN_RULES:
            if not rule.applies_to(name):
                continue
            matched = rule.band_for(topic_lower)
            if matched is not None:
                band, reason = matched

        score = min(1.0, self.rng.uniform(*band))
        return InterestEvaluation(
            score=score,
            reason=reason,
            should_participate=score >= character.interest_threshold,
            source="demo",
        )

    async def _model_evaluation(
        self,
        character: CharacterProfile,
        bank: MemoryBank,
        topic: str,
        context: str,
    ) -> Optional[InterestEvaluation]:
        settings = self.system_config.interest
        endpoints = self.system_config.providers

        steps = [ProviderStep("zai", self.client_factory(
            ZAIProviderConfig(), self.credentials, endpoints,
            temperature=settings.temperature, max_tokens=settings.max_tokens,
            transport=self.transport,
        ))]
        if self.credentials.has_real_key("openai"):
            steps.append(ProviderStep("openai", self.client_factory(
                OpenAIProviderConfig(model=settings.secondary_model), self.credentials, endpoints,
                temperature=settings.temperature, max_tokens=settings.max_tokens,
                transport=self.transport,
            )))

        chain = ProviderChain(steps)
        try:
            result = await chain.run(
                self.build_prompt(character, bank, topic, context),
                system_prompt=EVALUATION_SYSTEM_PROMPT,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                accept=parse_evaluation_reply,
                character_id=character.id,
                interaction_type="interest_evaluation",
            )
        finally:
            await chain.aclose()

        if not result.ok:
            return None

        score, reason = result.value
        logger.debug(f"{character.name} interest in topic: {score:.2f} via {result.provider}")
        return InterestEvaluation(
            score=score,
            reason=reason,
            should_participate=score >= character.interest_threshold,
            source=result.provider,
        )

    def _fallback_evaluation(self, character: CharacterProfile) -> InterestEvaluation:
        settings = self.system_config.interest
        base_score = self.rng.uniform(0.2, 0.8)
        score = min(1.0, base_score * character.participation_level)
        threshold = max(
            settings.fallback_threshold_floor,
            character.interest_threshold - settings.fallback_threshold_relaxation,
        )
        logger.info(f"Using degraded interest evaluation for {character.id}")
        return InterestEvaluation(
            score=score,
            reason=FALLBACK_REASON,
            should_participate=score >= threshold,
            source="fallback",
        )

    @staticmethod
    def build_prompt(character: CharacterProfile, bank: MemoryBank, topic: str, context: str) -> str:
        traits = bank.personality_traits
        return f"""
你是一个角色兴趣度评估专家。请评估以下角色对当前话题的兴趣度。

角色信息：
- 名称：{character.name}
- 系统提示词：{character.system_prompt}
- 性格特征：开放性{traits.openness}，尽责性{traits.conscientiousness}，外向性{traits.extraversion}，宜人性{traits.agreeableness}，神经质{traits.neuroticism}

当前话题：{topic}
对话上下文：{context}

请基于角色的设定、性格特征和话题的相关性，评估该角色对这个话题的兴趣度。
请以JSON格式返回评估结果：
{{
  "score": 0.0到1.0之间的数值,
  "reason": "详细的评估理由",
  "shouldParticipate": true/false
}}

评估标准：
- 0.0-0.2: 兴趣很低，不建议参与
- 0.2-0.5: 中等兴趣，可以参与
- 0.5-1.0: 高度兴趣，建议参与

考虑因素：
1. 话题与角色专业领域的相关性
2. 话题与角色性格的匹配度
3. 角色在类似话题上的历史参与度
4. 角色的参与积极性设定（{character.participation_level}）
"""
