"""Member matching for imported records.

Names from the calendar export are free text; matching binds a record to a member
only when the result is unambiguous and otherwise leaves a ranked candidate list
for the operator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rapidfuzz.distance import JaroWinkler

from leavesync.config.reconcile import MatchingConfig
from leavesync.domain.model import MatchStatus, MemberCandidate, MemberMatch

if TYPE_CHECKING:
    from collections.abc import Iterable

    from leavesync.domain.model import ImportRecord, Member

FIRST_NAME_WEIGHT = 0.4
LAST_NAME_WEIGHT = 0.6


def _clean(value: str | None) -> str:
    return " ".join((value or "").split()).lower()


def name_similarity(first1: str, last1: str, first2: str, last2: str) -> float:
    """Return a 0..100 similarity between two first/last name pairs."""

    last1_clean, last2_clean = _clean(last1), _clean(last2)
    if not last1_clean or not last2_clean:
        return 0.0
    last_score = JaroWinkler.normalized_similarity(last1_clean, last2_clean)

    first1_clean, first2_clean = _clean(first1), _clean(first2)
    if first1_clean and first2_clean:
        first_score = JaroWinkler.normalized_similarity(first1_clean, first2_clean)
    else:
        first_score = 0.0

    combined = FIRST_NAME_WEIGHT * first_score + LAST_NAME_WEIGHT * last_score
    return round(max(0.0, min(1.0, combined)) * 100, 1)


def rank_candidates(
    record: ImportRecord,
    members: Iterable[Member],
    *,
    config: MatchingConfig | None = None,
) -> tuple[MemberCandidate, ...]:
    """Score active members against ``record``, best first, above the candidate floor."""

    settings = config or MatchingConfig()
    scored = [
        MemberCandidate(
            member=member.to_ref(),
            confidence=name_similarity(
                record.first_name, record.last_name, member.first_name, member.last_name
            ),
        )
        for member in members
        if member.is_active
    ]
    ranked = sorted(
        (candidate for candidate in scored if candidate.confidence >= settings.candidate_floor),
        key=lambda candidate: (-candidate.confidence, candidate.member.pin_number),
    )
    return tuple(ranked[: settings.max_candidates])


def classify(
    candidates: tuple[MemberCandidate, ...],
    *,
    config: MatchingConfig | None = None,
) -> MemberMatch:
    """Decide whether ranked ``candidates`` identify exactly one member."""

    settings = config or MatchingConfig()
    if not candidates:
        return MemberMatch(status=MatchStatus.UNMATCHED)

    high = [c for c in candidates if c.confidence >= settings.high_confidence]
    if len(high) == 1:
        return MemberMatch(status=MatchStatus.MATCHED, member=high[0].member, candidates=candidates)
    if len(candidates) == 1:
        return MemberMatch(
            status=MatchStatus.MATCHED, member=candidates[0].member, candidates=candidates
        )

    top, runner_up = candidates[0], candidates[1]
    if (
        top.confidence >= settings.clear_winner_min
        and top.confidence - runner_up.confidence > settings.clear_winner_margin
    ):
        return MemberMatch(status=MatchStatus.MATCHED, member=top.member, candidates=candidates)
    return MemberMatch(status=MatchStatus.MULTIPLE_MATCHES, candidates=candidates)


def match_member(
    record: ImportRecord,
    members: Iterable[Member],
    *,
    config: MatchingConfig | None = None,
) -> MemberMatch:
    """Match one record, preferring an exact pin lookup when the record carries a pin."""

    pool = [member for member in members if member.is_active]
    if record.pin_number is not None:
        for member in pool:
            if member.pin_number == record.pin_number:
                ref = member.to_ref()
                return MemberMatch(
                    status=MatchStatus.MATCHED,
                    member=ref,
                    candidates=(MemberCandidate(member=ref, confidence=100.0),),
                )
    return classify(rank_candidates(record, pool, config=config), config=config)
