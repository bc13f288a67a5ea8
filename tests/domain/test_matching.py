from __future__ import annotations

from leavesync.config.reconcile import MatchingConfig
from leavesync.domain.matching import classify, match_member, name_similarity, rank_candidates
from leavesync.domain.model import MatchStatus, MemberCandidate
from tests.helpers.records import make_member, make_record


def test_name_similarity_bounds() -> None:
    assert name_similarity("Dana", "Whitfield", "Dana", "Whitfield") == 100.0
    assert name_similarity("Dana", "", "Dana", "Whitfield") == 0.0
    assert name_similarity("Dana", "Whitfield", "Dana", "Whitfeld") > 90.0


def test_pin_lookup_wins_over_names() -> None:
    member = make_member(4411, "Dana", "Whitfield")
    other = make_member(4412, "Dana", "Whitfield")
    record = make_record(first_name="D", last_name="W", pin_number=4412)

    result = match_member(record, [member, other])

    assert result.status == MatchStatus.MATCHED
    assert result.member == other.to_ref()
    assert result.candidates[0].confidence == 100.0


def test_single_confident_candidate_is_bound() -> None:
    members = [make_member(1, "Dana", "Whitfield"), make_member(2, "Morgan", "Okafor")]

    result = match_member(make_record(first_name="Dana", last_name="Whitfield"), members)

    assert result.status == MatchStatus.MATCHED
    assert result.member is not None
    assert result.member.pin_number == 1


def test_namesakes_are_left_for_the_operator() -> None:
    members = [make_member(1, "Dana", "Whitfield"), make_member(2, "Dana", "Whitfield")]

    result = match_member(make_record(first_name="Dana", last_name="Whitfield"), members)

    assert result.status == MatchStatus.MULTIPLE_MATCHES
    assert result.member is None
    assert [c.member.pin_number for c in result.candidates] == [1, 2]


def test_deleted_members_and_weak_scores_are_ignored() -> None:
    members = [
        make_member(1, "Dana", "Whitfield", deleted=True),
        make_member(2, "Quentin", "Abernathy"),
    ]

    result = match_member(make_record(first_name="Dana", last_name="Whitfield"), members)

    assert result.status == MatchStatus.UNMATCHED
    assert result.candidates == ()


def test_rank_candidates_respects_cap() -> None:
    members = [make_member(pin, "Dana", "Whitfield") for pin in range(1, 9)]
    config = MatchingConfig(max_candidates=3)

    record = make_record(first_name="Dana", last_name="Whitfield")

    ranked = rank_candidates(record, members, config=config)

    assert [c.member.pin_number for c in ranked] == [1, 2, 3]


def test_classify_clear_winner_by_margin() -> None:
    strong = MemberCandidate(member=make_member(1).to_ref(), confidence=85.0)
    weak = MemberCandidate(member=make_member(2).to_ref(), confidence=62.0)

    assert classify((strong, weak)).status == MatchStatus.MATCHED
    close = MemberCandidate(member=make_member(3).to_ref(), confidence=80.0)
    assert classify((strong, close)).status == MatchStatus.MULTIPLE_MATCHES
