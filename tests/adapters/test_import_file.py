from __future__ import annotations

import json
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from leavesync.adapters.import_file import (
    ImportFile,
    ImportFileError,
    load_import_file,
    parse_import_file,
)
from leavesync.domain.model import LeaveType, StatedStatus

if TYPE_CHECKING:
    from pathlib import Path


def _payload() -> dict[str, object]:
    return {
        "version": 1,
        "calendarId": "cal-north",
        "source": "ical-export",
        "exportedBy": "calendar-bridge",
        "requests": [
            {
                "firstName": " Dana ",
                "lastName": "Whitfield",
                "date": "2025-03-14",
                "leaveType": "pld",
                "status": "Approved",
                "requestedAt": "2025-01-06T08:00:00+01:00",
                "pin": "1042",
            },
            {
                "firstName": "Kim",
                "lastName": "Ashby",
                "date": "2025-03-14",
                "leaveType": "SDV",
                "status": "waitlisted",
                "requestedAt": "2025-01-06T09:30:00",
                "pin": " ",
            },
        ],
    }


def test_parse_import_file_normalizes_records() -> None:
    calendar_id, records = parse_import_file(_payload())

    assert calendar_id == "cal-north"
    dana, kim = records
    assert dana.first_name == "Dana"
    assert dana.leave_type is LeaveType.PLD
    assert dana.stated_status is StatedStatus.APPROVED
    assert dana.pin_number == 1042
    assert dana.requested_at == datetime(2025, 1, 6, 7, 0, tzinfo=UTC)
    assert dana.provenance == "ical-export"
    assert kim.request_date == date(2025, 3, 14)
    assert kim.pin_number is None
    # naive timestamps are taken as UTC
    assert kim.requested_at == datetime(2025, 1, 6, 9, 30, tzinfo=UTC)


def test_parse_import_file_accepts_a_validated_model() -> None:
    model = ImportFile.model_validate(_payload())

    calendar_id, records = parse_import_file(model)

    assert calendar_id == "cal-north"
    assert len(records) == 2


@pytest.mark.parametrize(
    ("field", "value"),
    [("leaveType", "vacation"), ("status", "denied"), ("date", "14/03/2025")],
)
def test_invalid_requests_are_rejected(field: str, value: str) -> None:
    payload = _payload()
    requests = payload["requests"]
    assert isinstance(requests, list)
    requests[0][field] = value

    with pytest.raises(ValidationError):
        parse_import_file(payload)


def test_load_import_file_reads_json(tmp_path: Path) -> None:
    path = tmp_path / "export.json"
    path.write_text(json.dumps(_payload()), encoding="utf-8")

    calendar_id, records = load_import_file(path)

    assert calendar_id == "cal-north"
    assert [record.last_name for record in records] == ["Whitfield", "Ashby"]


def test_load_import_file_wraps_read_and_schema_errors(tmp_path: Path) -> None:
    with pytest.raises(ImportFileError):
        load_import_file(tmp_path / "missing.json")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ImportFileError):
        load_import_file(broken)

    wrong_version = tmp_path / "v2.json"
    wrong_version.write_text(json.dumps({**_payload(), "version": 2}), encoding="utf-8")
    with pytest.raises(ImportFileError):
        load_import_file(wrong_version)
