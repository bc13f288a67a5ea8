"""Completion, transition validation and progress metrics for a staged session.

Nothing here mutates the session. Every stage has an explicit completion predicate
and a list of blocking reasons; transitions and the commit are checked against
them.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from leavesync.config.reconcile import ReconcileConfig
from leavesync.domain.errors import BlockingReason
from leavesync.domain.model import STAGE_ORDER, ImportStage, RequestStatus
from leavesync.domain.staging import db_reconciliation, duplicates, over_allotment, unmatched

if TYPE_CHECKING:
    from leavesync.domain.staging.session import StageData, StagedSession


@dataclass(frozen=True, slots=True)
class ProgressState:
    """Immutable view of the session returned after every operation."""

    current_stage: ImportStage
    completed_stages: tuple[ImportStage, ...]
    can_progress: bool
    stage_data: StageData
    revision: int


@dataclass(frozen=True, slots=True)
class ProgressMetrics:
    completed_stages: int
    total_stages: int
    current_stage_progress: int
    estimated_minutes_remaining: int
    data_integrity_score: int


@dataclass(frozen=True, slots=True)
class TransitionValidation:
    target: ImportStage
    is_valid: bool
    errors: tuple[BlockingReason, ...] = ()
    warnings: tuple[str, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class CapacityImpact:
    """How queued reconciliation writes move the free slots of one date."""

    request_date: date
    approved_delta: int
    available_before: int
    available_after: int

    @property
    def message(self) -> str:
        direction = "frees" if self.approved_delta < 0 else "uses"
        text = (
            f"{self.request_date.isoformat()}: queued changes {direction} "
            f"{abs(self.approved_delta)} slot(s), {self.available_after} left"
        )
        if self.available_after < 0:
            text += " (over allotment)"
        return text


# -- per-stage predicates ------------------------------------------------------


def blocking_reasons(session: StagedSession, stage: ImportStage) -> tuple[BlockingReason, ...]:
    data = session.stage_data
    reasons: list[BlockingReason] = []
    if stage is ImportStage.UNMATCHED:
        demoted = data.unmatched.demoted
        for index, reason in sorted(demoted.items()):
            if index in data.unmatched.skipped_items or index in data.unmatched.resolutions:
                continue
            reasons.append(
                BlockingReason(
                    stage=stage,
                    category="data_integrity",
                    message=f"item {index}: {reason}",
                    item_indices=(index,),
                )
            )
        pending = tuple(
            index
            for index in unmatched.unresolved_items(session.items, data.unmatched)
            if index not in demoted
        )
        if pending:
            reasons.append(
                BlockingReason(
                    stage=stage,
                    category="unresolved_member",
                    message=f"{len(pending)} item(s) need a member or a skip",
                    item_indices=pending,
                )
            )
    elif stage is ImportStage.DUPLICATES:
        pending = duplicates.undecided(data.duplicates)
        if pending:
            reasons.append(
                BlockingReason(
                    stage=stage,
                    category="undecided_duplicate",
                    message=f"{len(pending)} duplicate(s) need a skip or import decision",
                    item_indices=pending,
                )
            )
    elif stage is ImportStage.OVER_ALLOTMENT:
        oa = data.over_allotment
        for day in over_allotment.unresolved_dates(oa):
            missing = "allotment decision" if day in oa.request_ordering else "explicit ordering"
            reasons.append(
                BlockingReason(
                    stage=stage,
                    category="unresolved_date",
                    message=f"{day.isoformat()} is missing an {missing}",
                    item_indices=oa.dates[day].import_requests,
                )
            )
    elif stage is ImportStage.DB_RECONCILIATION:
        pending_conflicts = db_reconciliation.unresolved(data.db_reconciliation)
        if pending_conflicts:
            reasons.append(
                BlockingReason(
                    stage=stage,
                    category="unresolved_conflict",
                    message=f"{len(pending_conflicts)} store conflict(s) need a resolution",
                    item_indices=tuple(c.original_index for c in pending_conflicts),
                )
            )
    return tuple(reasons)


def is_stage_complete(session: StagedSession, stage: ImportStage) -> bool:
    if stage is ImportStage.FINAL_REVIEW:
        return session.is_committed
    return not blocking_reasons(session, stage)


def stage_counts(session: StagedSession, stage: ImportStage) -> tuple[int, int]:
    """Return (resolved, required) decisions for ``stage``."""

    data = session.stage_data
    if stage is ImportStage.UNMATCHED:
        required = [i for i in session.items if unmatched.requires_resolution(i, data.unmatched)]
        resolved = [i for i in required if unmatched.is_item_resolved(i, data.unmatched)]
        return len(resolved), len(required)
    if stage is ImportStage.DUPLICATES:
        total = len(data.duplicates.duplicate_items)
        return total - len(duplicates.undecided(data.duplicates)), total
    if stage is ImportStage.OVER_ALLOTMENT:
        total = len(data.over_allotment.over_allotted_dates())
        return total - len(over_allotment.unresolved_dates(data.over_allotment)), total
    if stage is ImportStage.DB_RECONCILIATION:
        total = len(data.db_reconciliation.conflicts)
        return total - len(db_reconciliation.unresolved(data.db_reconciliation)), total
    return (1 if session.is_committed else 0), 1


def can_progress(session: StagedSession) -> bool:
    if session.is_committed:
        return False
    reviewed = STAGE_ORDER[: session.current_stage.order + 1]
    return all(not blocking_reasons(session, stage) for stage in reviewed)


def progress_state(session: StagedSession) -> ProgressState:
    return ProgressState(
        current_stage=session.current_stage,
        completed_stages=tuple(session.completed_stages),
        can_progress=can_progress(session),
        stage_data=copy.deepcopy(session.stage_data),
        revision=session.revision,
    )


# -- metrics -------------------------------------------------------------------


def _flagged_items(session: StagedSession) -> set[int]:
    data = session.stage_data
    flagged = set(unmatched.unresolved_items(session.items, data.unmatched))
    flagged.update(
        index
        for index in data.unmatched.demoted
        if index not in data.unmatched.resolutions and index not in data.unmatched.skipped_items
    )
    flagged.update(duplicates.undecided(data.duplicates))
    oa = data.over_allotment
    for day in over_allotment.unresolved_dates(oa):
        flagged.update(oa.dates[day].import_requests)
    flagged.update(c.original_index for c in db_reconciliation.unresolved(data.db_reconciliation))
    return flagged


def calculate_progress_metrics(
    session: StagedSession, config: ReconcileConfig | None = None
) -> ProgressMetrics:
    settings = config or ReconcileConfig()
    resolved, required = stage_counts(session, session.current_stage)
    current_progress = 100 if required == 0 else round(resolved * 100 / required)

    seconds = 0.0
    for stage in STAGE_ORDER[session.current_stage.order :]:
        done, needed = stage_counts(session, stage)
        seconds += (needed - done) * settings.seconds_for(stage.value)

    total_items = len(session.items)
    if total_items == 0:
        integrity = 100
    else:
        integrity = round((total_items - len(_flagged_items(session))) * 100 / total_items)

    return ProgressMetrics(
        completed_stages=len(session.completed_stages),
        total_stages=len(STAGE_ORDER),
        current_stage_progress=current_progress,
        estimated_minutes_remaining=math.ceil(seconds / 60),
        data_integrity_score=integrity,
    )


def analyze_queued_change_impact(session: StagedSession) -> tuple[CapacityImpact, ...]:
    """Report dates whose free capacity moves because of queued status overwrites."""

    oa = session.stage_data.over_allotment
    deltas: dict[date, int] = {}
    for write in db_reconciliation.queued_writes(session.stage_data.db_reconciliation):
        was_approved = write.from_status == RequestStatus.APPROVED
        now_approved = write.to_status == RequestStatus.APPROVED
        delta = int(now_approved) - int(was_approved)
        if delta:
            deltas[write.request_date] = deltas.get(write.request_date, 0) + delta

    assignments = session.assignments()
    impacts: list[CapacityImpact] = []
    for day, delta in sorted(deltas.items()):
        info = oa.dates.get(day)
        if info is None or delta == 0:
            continue
        allotment = oa.allotment_adjustments.get(day, info.current_allotment)
        imported_approved = sum(
            1
            for index in info.import_requests
            if index in assignments
            and assignments[index].is_approved
            and index not in session.stage_data.db_reconciliation.matched_requests
        )
        available = allotment - info.existing_requests - imported_approved
        impacts.append(
            CapacityImpact(
                request_date=day,
                approved_delta=delta,
                available_before=available,
                available_after=available - delta,
            )
        )
    return tuple(impacts)


# -- transitions ---------------------------------------------------------------


def describe_discard(session: StagedSession, target: ImportStage) -> tuple[str, ...]:
    """Human-readable list of what returning to ``target`` throws away."""

    data = session.stage_data
    lines: list[str] = []
    for stage in STAGE_ORDER[target.order : session.current_stage.order + 1]:
        if stage is ImportStage.UNMATCHED:
            resolved = len(data.unmatched.resolutions)
            skipped = len(data.unmatched.skipped_items)
            if resolved or skipped:
                lines.append(f"unmatched: {resolved} member binding(s), {skipped} skipped item(s)")
        elif stage is ImportStage.DUPLICATES:
            dup = data.duplicates
            decided = len(dup.skip_duplicates) + len(dup.override_duplicates)
            if decided:
                lines.append(f"duplicates: {decided} duplicate decision(s)")
        elif stage is ImportStage.OVER_ALLOTMENT:
            oa = data.over_allotment
            if oa.allotment_adjustments:
                lines.append(
                    f"over_allotment: {len(oa.allotment_adjustments)} allotment adjustment(s)"
                )
            if oa.request_ordering:
                lines.append(f"over_allotment: {len(oa.request_ordering)} explicit ordering(s)")
            if oa.skipped_requests:
                lines.append(f"over_allotment: {len(oa.skipped_requests)} skipped request(s)")
        elif stage is ImportStage.DB_RECONCILIATION:
            if data.db_reconciliation.resolutions:
                lines.append(
                    "db_reconciliation: "
                    f"{len(data.db_reconciliation.resolutions)} conflict resolution(s)"
                )
        elif data.final_review.commit_error:
            lines.append("final_review: last commit error")
        if stage in session.completed_stages:
            lines.append(f"{stage.value}: completion mark")
    return tuple(lines)


def validate_stage_transition(session: StagedSession, target: ImportStage) -> TransitionValidation:
    """Check whether moving to ``target`` is allowed, without changing anything."""

    current = session.current_stage
    if session.is_committed:
        return TransitionValidation(
            target=target,
            is_valid=False,
            errors=(
                BlockingReason(
                    stage=current, category="committed", message="session is already committed"
                ),
            ),
        )
    if target == current:
        return TransitionValidation(
            target=target,
            is_valid=False,
            errors=(
                BlockingReason(
                    stage=current,
                    category="transition",
                    message=f"{target.value} is already the current stage",
                ),
            ),
        )

    if target.order > current.order:
        errors: list[BlockingReason] = []
        if current.next_stage != target:
            errors.append(
                BlockingReason(
                    stage=current,
                    category="transition",
                    message=f"cannot skip from {current.value} to {target.value}",
                )
            )
        for stage in STAGE_ORDER[: current.order + 1]:
            errors.extend(blocking_reasons(session, stage))
        warnings: tuple[str, ...] = ()
        if current is ImportStage.DB_RECONCILIATION:
            warnings = tuple(impact.message for impact in analyze_queued_change_impact(session))
        return TransitionValidation(
            target=target, is_valid=not errors, errors=tuple(errors), warnings=warnings
        )

    backward_errors: list[BlockingReason] = []
    for stage in target.earlier_stages:
        backward_errors.extend(blocking_reasons(session, stage))
    return TransitionValidation(
        target=target,
        is_valid=not backward_errors,
        errors=tuple(backward_errors),
        warnings=describe_discard(session, target),
    )
