from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from leavesync.app import (
    add_member,
    build_staging_store,
    build_workflow,
    initialise_database,
    reset_waitlist,
    set_allotment,
    stage_import,
    validate_waitlist,
)
from leavesync.config import configure_logging, require_env_var
from leavesync.domain.errors import StageValidationError
from leavesync.domain.model import ConflictAction, DuplicateDecision, ImportStage
from leavesync.domain.staging.progress import blocking_reasons

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from leavesync.adapters.staging_store import JsonStagingStore
    from leavesync.domain.staging import ReconciliationWorkflow, StagedSession
    from leavesync.domain.waitlist import WaitlistValidation

    type SessionAction = Callable[[ReconciliationWorkflow, StagedSession, argparse.Namespace], None]

log = logging.getLogger(__name__)

ACTOR_ENV = "LEAVESYNC_ACTOR"
ACTOR_HELP = f"Who makes the change (defaults to ${ACTOR_ENV})"


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid ISO date: {value}") from exc


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _actor(args: argparse.Namespace) -> str:
    return args.actor or require_env_var(ACTOR_ENV)


def _add_session_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("session_id", type=_parse_uuid, help="Staged session id")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:  # noqa: PLR0915
    parser = argparse.ArgumentParser(description="Reconcile imported leave requests")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create or migrate the operational store")

    member = subparsers.add_parser("member", help="Member management commands")
    member_sub = member.add_subparsers(dest="member_command", required=True)
    member_add = member_sub.add_parser("add", help="Add a member")
    member_add.add_argument("--pin", type=int, required=True, help="Member pin number")
    member_add.add_argument("--first-name", required=True)
    member_add.add_argument("--last-name", required=True)
    member_add.add_argument("--calendar", help="Calendar the member belongs to")

    allotment = subparsers.add_parser("allotment", help="Allotment commands")
    allotment_sub = allotment.add_subparsers(dest="allotment_command", required=True)
    allotment_set = allotment_sub.add_parser("set", help="Set the allotment of one date")
    allotment_set.add_argument("--calendar", required=True)
    allotment_set.add_argument("--date", type=_parse_date, required=True)
    allotment_set.add_argument("--value", type=int, required=True)
    allotment_set.add_argument("--actor", help=ACTOR_HELP)

    stage = subparsers.add_parser("stage", help="Open a staged session for an import file")
    stage.add_argument("path", type=Path, help="Normalized JSON import file")

    subparsers.add_parser("sessions", help="List staged sessions")

    status = subparsers.add_parser("status", help="Show progress of a staged session")
    _add_session_arg(status)

    advance = subparsers.add_parser("advance", help="Move to the next stage")
    _add_session_arg(advance)

    resolve_member = subparsers.add_parser("resolve-member", help="Bind an item to a member")
    _add_session_arg(resolve_member)
    resolve_member.add_argument("index", type=int)
    resolve_member.add_argument("member_id", type=_parse_uuid)

    skip_item = subparsers.add_parser("skip-item", help="Skip an unmatched item")
    _add_session_arg(skip_item)
    skip_item.add_argument("index", type=int)

    duplicate = subparsers.add_parser("duplicate", help="Decide a flagged duplicate")
    _add_session_arg(duplicate)
    duplicate.add_argument("index", type=int)
    duplicate.add_argument("decision", type=DuplicateDecision, choices=list(DuplicateDecision))

    adjust = subparsers.add_parser("adjust", help="Override the allotment of a date")
    _add_session_arg(adjust)
    adjust.add_argument("date", type=_parse_date)
    adjust.add_argument("value", type=int)

    reorder = subparsers.add_parser("reorder", help="Set the priority order of a date")
    _add_session_arg(reorder)
    reorder.add_argument("date", type=_parse_date)
    reorder.add_argument("indices", type=int, nargs="+")

    skip_request = subparsers.add_parser("skip-request", help="Leave a request out of a date")
    _add_session_arg(skip_request)
    skip_request.add_argument("index", type=int)
    skip_request.add_argument("--undo", action="store_true", help="Put the request back")

    resolve_conflict = subparsers.add_parser("resolve-conflict", help="Resolve a store conflict")
    _add_session_arg(resolve_conflict)
    resolve_conflict.add_argument("conflict_id")
    resolve_conflict.add_argument("action", type=ConflictAction, choices=list(ConflictAction))
    resolve_conflict.add_argument("--reason", help="Administrator reason for an overwrite")

    rollback = subparsers.add_parser("rollback", help="Return to an earlier stage")
    _add_session_arg(rollback)
    rollback.add_argument("stage", type=ImportStage, choices=list(ImportStage))
    rollback.add_argument(
        "--yes", action="store_true", help="Confirm the discard (otherwise only show the plan)"
    )

    navigate = subparsers.add_parser("navigate", help="Revisit a completed stage")
    _add_session_arg(navigate)
    navigate.add_argument("stage", type=ImportStage, choices=list(ImportStage))

    commit = subparsers.add_parser("commit", help="Write the session to the store")
    _add_session_arg(commit)
    commit.add_argument("--actor", help=ACTOR_HELP)

    discard = subparsers.add_parser("discard", help="Cancel a staged session")
    _add_session_arg(discard)

    reset = subparsers.add_parser("reset-waitlist", help="Renumber the waitlist of one date")
    reset.add_argument("--calendar", required=True)
    reset.add_argument("--date", type=_parse_date, required=True)
    reset.add_argument("--actor", help=ACTOR_HELP)
    reset.add_argument(
        "--by-requested-at",
        action="store_true",
        help="Order by request time instead of the current positions",
    )

    check = subparsers.add_parser(
        "validate-waitlist", help="Check proposed waitlist positions against one date"
    )
    check.add_argument("--calendar", required=True)
    check.add_argument("--date", type=_parse_date, required=True)
    check.add_argument("positions", type=int, nargs="+", help="Proposed positions, in order")

    return parser.parse_args(list(argv))


def _print_status(workflow: ReconciliationWorkflow, session: StagedSession) -> None:
    state = workflow.progress(session)
    metrics = workflow.metrics(session)
    completed = ", ".join(stage.value for stage in state.completed_stages) or "-"
    print(f"session:    {session.session_id} ({session.calendar_id})")
    print(f"stage:      {state.current_stage.value} (completed: {completed})")
    print(
        f"progress:   {metrics.current_stage_progress}% of stage, "
        f"{metrics.completed_stages}/{metrics.total_stages} stages, "
        f"~{metrics.estimated_minutes_remaining} min left"
    )
    print(f"integrity:  {metrics.data_integrity_score}%")
    print(f"advance:    {'yes' if state.can_progress else 'no'}")
    for reason in blocking_reasons(session, session.current_stage):
        print(f"  blocked [{reason.category}] {reason.message}")
    summary = session.stage_data.final_review.summary
    if session.current_stage is ImportStage.FINAL_REVIEW and summary is not None:
        print(
            f"summary:    {summary.approved} approved, {summary.waitlisted} waitlisted, "
            f"{summary.skipped} skipped of {summary.total}"
        )
        for change in summary.allotment_changes:
            print(f"  allotment {change.request_date}: {change.previous} -> {change.new}")
        for day in summary.defaulted_dates:
            print(f"  {day}: overflow waitlisted in import order (no decision recorded)")
    if session.stage_data.final_review.commit_error:
        print(f"last commit error: {session.stage_data.final_review.commit_error}")


def _print_waitlist_validation(validation: WaitlistValidation) -> None:
    if validation.is_valid:
        print("waitlist positions are valid")
        return
    for conflict in validation.conflicts:
        print(
            f"  conflict: proposed #{conflict.item_id} and request {conflict.request_id} "
            f"both claim position {conflict.position}"
        )
    if validation.gaps:
        print(f"  gaps: {', '.join(str(gap) for gap in validation.gaps)}")
    for suggestion in validation.suggestions:
        print(f"  suggest: proposed #{suggestion.item_id} -> {suggestion.position}")


def _run_session_action(
    store: JsonStagingStore,
    workflow: ReconciliationWorkflow,
    args: argparse.Namespace,
    action: SessionAction,
) -> None:
    session = store.load(args.session_id)
    try:
        action(workflow, session, args)
    finally:
        store.save(session)
    _print_status(workflow, session)


def _do_rollback(
    workflow: ReconciliationWorkflow, session: StagedSession, args: argparse.Namespace
) -> None:
    plan = workflow.plan_rollback(session, args.stage)
    for line in plan.discarded:
        print(f"  discard {line}")
    if not args.yes:
        log.info("Rollback not applied; re-run with --yes to discard the listed work")
        return
    workflow.rollback(session, plan, confirmed=True)


def _do_commit(
    workflow: ReconciliationWorkflow, session: StagedSession, args: argparse.Namespace
) -> None:
    result = workflow.commit(session, actor=_actor(args))
    if result.success:
        log.info(
            "Committed: created=%d updated=%d allotments=%d renumbered=%d audit=%d",
            result.created,
            result.updated,
            result.allotments_changed,
            result.renumbered,
            result.audit_entries,
        )
        return
    for failure in result.failures:
        log.error("  %s %s: %s", failure.record_type.value, failure.key, failure.message)
    raise RuntimeError(f"Commit failed: {result.error}")


SESSION_ACTIONS: dict[str, SessionAction] = {
    "status": lambda workflow, session, args: None,
    "advance": lambda workflow, session, args: workflow.advance(session),
    "resolve-member": lambda workflow, session, args: workflow.resolve_member(
        session, args.index, args.member_id
    ),
    "skip-item": lambda workflow, session, args: workflow.skip_item(session, args.index),
    "duplicate": lambda workflow, session, args: workflow.flag_duplicate(
        session, args.index, args.decision
    ),
    "adjust": lambda workflow, session, args: workflow.adjust_allotment(
        session, args.date, args.value
    ),
    "reorder": lambda workflow, session, args: workflow.reorder(session, args.date, args.indices),
    "skip-request": lambda workflow, session, args: workflow.skip_request(
        session, args.index, skipped=not args.undo
    ),
    "resolve-conflict": lambda workflow, session, args: workflow.resolve_conflict(
        session, args.conflict_id, args.action, args.reason
    ),
    "rollback": _do_rollback,
    "navigate": lambda workflow, session, args: workflow.navigate(session, args.stage),
    "commit": _do_commit,
}


def _dispatch(args: argparse.Namespace) -> None:
    command = args.command
    if command == "init-db":
        initialise_database()
        log.info("Operational store is up to date")
    elif command == "member" and args.member_command == "add":
        member = add_member(
            pin_number=args.pin,
            first_name=args.first_name,
            last_name=args.last_name,
            calendar_id=args.calendar,
        )
        print(member.id)
    elif command == "allotment" and args.allotment_command == "set":
        set_allotment(args.calendar, args.date, args.value, actor=_actor(args))
    elif command == "reset-waitlist":
        result = reset_waitlist(
            args.calendar, args.date, actor=_actor(args), preserve_order=not args.by_requested_at
        )
        print(f"{result.updated_count} row(s) renumbered")
    elif command == "validate-waitlist":
        _print_waitlist_validation(validate_waitlist(args.calendar, args.date, args.positions))
    elif command == "stage":
        workflow = build_workflow()
        session = stage_import(args.path, workflow=workflow, store=build_staging_store())
        _print_status(workflow, session)
    elif command == "sessions":
        for session_id in build_staging_store().list_ids():
            print(session_id)
    elif command == "discard":
        if not build_staging_store().delete(args.session_id):
            log.info("Session %s was already discarded", args.session_id)
    elif command in SESSION_ACTIONS:
        _run_session_action(
            build_staging_store(), build_workflow(), args, SESSION_ACTIONS[command]
        )
    else:
        raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        _dispatch(parsed_args)
    except StageValidationError as exc:
        log.error("%s", exc)  # noqa: TRY400
        for reason in exc.reasons:
            log.error("  [%s/%s] %s", reason.stage.value, reason.category, reason.message)
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
