"""Choosing which characters speak in a round."""

from typing import List, Sequence, Tuple

from roundtable_engine.config.models import CharacterProfile
from roundtable_engine.models.chat import InterestEvaluation, ParticipantSelection

FORCED_PARTICIPATION_REASON = "强制参与以保持对话活跃"


def select_participants(
    evaluations: Sequence[Tuple[CharacterProfile, InterestEvaluation]],
    min_participants: int = 2,
) -> List[ParticipantSelection]:
    """
    Pick the speakers for a round, most interested first.

    Every character that wants to participate is selected. When that leaves
    fewer than min(min_participants, len(evaluations)) speakers, the
    highest-scoring remaining characters are added and marked forced, so a
    round never goes silent while characters are present.
    """
    ranked = sorted(evaluations, key=lambda pair: pair[1].score, reverse=True)
    quota = min(min_participants, len(ranked))

    selected = [
        ParticipantSelection(character=character, evaluation=evaluation, reason=evaluation.reason)
        for character, evaluation in ranked
        if evaluation.should_participate
    ]

    if len(selected) < quota:
        for character, evaluation in ranked:
            if len(selected) >= quota:
                break
            if evaluation.should_participate:
                continue
            selected.append(ParticipantSelection(
                character=character,
                evaluation=evaluation,
                forced=True,
                reason=FORCED_PARTICIPATION_REASON,
            ))

    return selected
