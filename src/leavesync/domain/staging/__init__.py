"""Staged reconciliation of imported leave requests."""

from __future__ import annotations

from leavesync.domain.staging.db_reconciliation import (
    ConflictResolution,
    DbConflict,
    DbReconciliationStageData,
    QueuedWrite,
)
from leavesync.domain.staging.duplicates import DuplicateStageData
from leavesync.domain.staging.final_review import (
    AllotmentChange,
    FinalReviewStageData,
    ReviewSummary,
)
from leavesync.domain.staging.over_allotment import OverAllotmentDate, OverAllotmentStageData
from leavesync.domain.staging.unmatched import UnmatchedStageData
from leavesync.domain.staging.session import DateSnapshot, RequestState, StageData, StagedSession
from leavesync.domain.staging.progress import (
    CapacityImpact,
    ProgressMetrics,
    ProgressState,
    TransitionValidation,
    analyze_queued_change_impact,
    calculate_progress_metrics,
    validate_stage_transition,
)
from leavesync.domain.staging.rollback import RollbackPlan, apply_rollback, plan_rollback
from leavesync.domain.staging.commit import CommitExecutor, CommitResult, RowFailure
from leavesync.domain.staging.workflow import ReconciliationWorkflow

__all__ = [
    "AllotmentChange",
    "CapacityImpact",
    "CommitExecutor",
    "CommitResult",
    "ConflictResolution",
    "DateSnapshot",
    "DbConflict",
    "DbReconciliationStageData",
    "DuplicateStageData",
    "FinalReviewStageData",
    "OverAllotmentDate",
    "OverAllotmentStageData",
    "ProgressMetrics",
    "ProgressState",
    "QueuedWrite",
    "ReconciliationWorkflow",
    "RequestState",
    "ReviewSummary",
    "RollbackPlan",
    "RowFailure",
    "StageData",
    "StagedSession",
    "TransitionValidation",
    "UnmatchedStageData",
    "analyze_queued_change_impact",
    "apply_rollback",
    "calculate_progress_metrics",
    "plan_rollback",
    "validate_stage_transition",
]
