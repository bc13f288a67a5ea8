from __future__ import annotations

import pytest

from leavesync.domain.errors import SessionCommittedError, StageMismatchError, UnknownItemError
from leavesync.domain.model import ImportStage
from leavesync.domain.staging import StagedSession, unmatched
from leavesync.domain.staging.progress import blocking_reasons, is_stage_complete
from tests.helpers.records import CALENDAR, make_item, make_member, make_record


def _session() -> tuple[StagedSession, list]:
    matched = make_member(1, "Dana", "Whitfield")
    items = [
        make_item(0, make_record(matched), matched),
        make_item(1, make_record(first_name="Kim", last_name="Ashby")),
        make_item(2, make_record(first_name="Lee", last_name="Park")),
    ]
    return StagedSession(calendar_id=CALENDAR, items=items), [matched]


def test_unresolved_items_block_the_stage() -> None:
    session, _ = _session()

    assert unmatched.unresolved_items(session.items, session.stage_data.unmatched) == (1, 2)
    reasons = blocking_reasons(session, ImportStage.UNMATCHED)
    assert [r.category for r in reasons] == ["unresolved_member"]
    assert reasons[0].item_indices == (1, 2)


def test_binding_and_skipping_complete_the_stage() -> None:
    session, _ = _session()
    kim = make_member(2, "Kim", "Ashby")

    session.resolve_member(1, kim.to_ref())
    session.skip_item(2)

    assert is_stage_complete(session, ImportStage.UNMATCHED)
    assert session.bound_member(1) == kim.to_ref()
    assert session.bound_member(2) is None
    assert set(session.bound_members()) == {0, 1}
    assert session.revision == 2


def test_resolving_after_a_skip_unskips() -> None:
    session, _ = _session()
    kim = make_member(2, "Kim", "Ashby")

    session.skip_item(1)
    session.resolve_member(1, kim.to_ref())

    assert 1 not in session.stage_data.unmatched.skipped_items


def test_stale_bindings_are_demoted_with_a_data_integrity_reason() -> None:
    session, (matched,) = _session()
    session.skip_item(1)
    session.skip_item(2)
    deleted = make_member(1, "Dana", "Whitfield", deleted=True)
    deleted.id = matched.id

    stale = unmatched.find_stale_bindings(
        session.items, session.stage_data.unmatched, {matched.id: deleted}
    )
    session.demote_stale(stale)

    assert stale == {0: unmatched.MEMBER_DELETED}
    assert session.bound_member(0) is None
    reasons = blocking_reasons(session, ImportStage.UNMATCHED)
    assert [r.category for r in reasons] == ["data_integrity"]
    assert reasons[0].item_indices == (0,)


def test_missing_member_is_reported() -> None:
    session, _ = _session()

    stale = unmatched.find_stale_bindings(session.items, session.stage_data.unmatched, {})

    assert stale == {0: unmatched.MEMBER_MISSING}


def test_mutations_are_guarded() -> None:
    session, _ = _session()

    with pytest.raises(UnknownItemError):
        session.skip_item(9)

    session.current_stage = ImportStage.DUPLICATES
    with pytest.raises(StageMismatchError):
        session.skip_item(1)

    session.current_stage = ImportStage.UNMATCHED
    session.stage_data.final_review.committed = True
    with pytest.raises(SessionCommittedError):
        session.skip_item(1)
