"""Replay Comparison — pure diff of recorded vs replayed score results.

Invariants:
    - Scores compared by exact string equality (both sides are four-digit score strings)
    - One discrepancy per asset id that differs or exists on only one side
    - Missing side reported as None; original order first, then replay-only assets
    - matches is True iff there are no discrepancies
"""

from dataclasses import dataclass
from typing import Sequence

from investscore.core.score_aggregator import ScoreResult


@dataclass(frozen=True)
class Discrepancy:
    asset_id: str
    original_score: str | None
    replay_score: str | None

    def to_dict(self) -> dict:
        return {
            "asset_id": self.asset_id,
            "original_score": self.original_score,
            "replay_score": self.replay_score,
        }


def compare_results(
    original: Sequence[ScoreResult], replayed: Sequence[ScoreResult],
) -> list[Discrepancy]:
    """Per-asset score diff. Empty list means the replay reproduced the run."""
    replay_by_id = {r.asset_id: r.score for r in replayed}
    original_ids = set()
    discrepancies = []

    for result in original:
        original_ids.add(result.asset_id)
        replay_score = replay_by_id.get(result.asset_id)
        if replay_score != result.score:
            discrepancies.append(Discrepancy(
                result.asset_id, result.score, replay_score,
            ))

    for result in replayed:
        if result.asset_id not in original_ids:
            discrepancies.append(Discrepancy(result.asset_id, None, result.score))

    return discrepancies
