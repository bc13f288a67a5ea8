"""Pydantic models describing the normalized import file."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime  # noqa: TC003
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leavesync.domain.model import LeaveType, StatedStatus


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ImportFileBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RequestPayload(ImportFileBaseModel):
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    request_date: date = Field(alias="date")
    leave_type: LeaveType = Field(alias="leaveType")
    status: StatedStatus
    requested_at: datetime = Field(alias="requestedAt")
    pin_number: int | None = Field(default=None, alias="pin")

    _normalize_pin = field_validator("pin_number", mode="before")(_blank_to_none)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("leave_type", mode="before")
    @classmethod
    def _upper_leave_type(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class ImportFile(ImportFileBaseModel):
    version: Literal[1] = 1
    calendar_id: str = Field(alias="calendarId")
    source: str = "ical"
    requests: list[RequestPayload]


type ImportFileInput = ImportFile | Mapping[str, object]
