"""Translate import-file payloads into domain import records."""

from __future__ import annotations

import json
from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from leavesync.domain.model import ImportRecord

from .schema import ImportFile, ImportFileInput, RequestPayload

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class ImportFileError(ValueError):
    """Raised when an import file cannot be read or does not match the schema."""


def _ensure_import_file(payload: ImportFileInput) -> ImportFile:
    if isinstance(payload, ImportFile):
        return payload
    return ImportFile.model_validate(payload)


def parse_request(payload: RequestPayload, *, source: str) -> ImportRecord:
    requested_at = payload.requested_at
    if requested_at.tzinfo is None:
        requested_at = requested_at.replace(tzinfo=UTC)
    return ImportRecord(
        first_name=payload.first_name,
        last_name=payload.last_name,
        request_date=payload.request_date,
        leave_type=payload.leave_type,
        stated_status=payload.status,
        requested_at=requested_at.astimezone(UTC),
        pin_number=payload.pin_number,
        provenance=source,
    )


def parse_import_file(payload: ImportFileInput) -> tuple[str, list[ImportRecord]]:
    """Return the calendar id and the records in file order."""

    import_file = _ensure_import_file(payload)
    records = [parse_request(entry, source=import_file.source) for entry in import_file.requests]
    return import_file.calendar_id, records


def load_import_file(path: Path) -> tuple[str, list[ImportRecord]]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        calendar_id, records = parse_import_file(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise ImportFileError(f"Cannot read import file {path}: {exc}") from exc
    log.info("Read %d request(s) for %s from %s", len(records), calendar_id, path)
    return calendar_id, records
