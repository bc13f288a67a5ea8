"""Defaults for the staged reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import env_float, env_int

DEFAULT_HIGH_CONFIDENCE = 90.0
DEFAULT_CLEAR_WINNER_MIN = 80.0
DEFAULT_CLEAR_WINNER_MARGIN = 20.0
DEFAULT_CANDIDATE_FLOOR = 60.0
DEFAULT_MAX_CANDIDATES = 5

# Observed operator effort per decision, in seconds.
DEFAULT_RESOLUTION_SECONDS: dict[str, float] = {
    "unmatched": 45.0,
    "duplicates": 15.0,
    "over_allotment": 30.0,
    "db_reconciliation": 25.0,
    "final_review": 60.0,
}


@dataclass(frozen=True, slots=True)
class MatchingConfig:
    high_confidence: float = DEFAULT_HIGH_CONFIDENCE
    clear_winner_min: float = DEFAULT_CLEAR_WINNER_MIN
    clear_winner_margin: float = DEFAULT_CLEAR_WINNER_MARGIN
    candidate_floor: float = DEFAULT_CANDIDATE_FLOOR
    max_candidates: int = DEFAULT_MAX_CANDIDATES


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    resolution_seconds: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_RESOLUTION_SECONDS)
    )

    def seconds_for(self, stage: str) -> float:
        return self.resolution_seconds.get(stage, 30.0)


def get_reconcile_config() -> ReconcileConfig:
    matching = MatchingConfig(
        high_confidence=env_float("LEAVESYNC_MATCH_HIGH_CONFIDENCE", DEFAULT_HIGH_CONFIDENCE),
        clear_winner_min=env_float("LEAVESYNC_MATCH_CLEAR_WINNER_MIN", DEFAULT_CLEAR_WINNER_MIN),
        clear_winner_margin=env_float(
            "LEAVESYNC_MATCH_CLEAR_WINNER_MARGIN", DEFAULT_CLEAR_WINNER_MARGIN
        ),
        candidate_floor=env_float("LEAVESYNC_MATCH_CANDIDATE_FLOOR", DEFAULT_CANDIDATE_FLOOR),
        max_candidates=env_int("LEAVESYNC_MATCH_MAX_CANDIDATES", DEFAULT_MAX_CANDIDATES),
    )
    resolution_seconds = {
        stage: env_float(f"LEAVESYNC_RESOLUTION_SECONDS_{stage.upper()}", default)
        for stage, default in DEFAULT_RESOLUTION_SECONDS.items()
    }
    return ReconcileConfig(matching=matching, resolution_seconds=resolution_seconds)
