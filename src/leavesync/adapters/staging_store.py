"""File-backed storage for staged sessions between operator invocations."""

from __future__ import annotations

from functools import cache
from logging import getLogger
from typing import TYPE_CHECKING
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from leavesync.domain.errors import SessionNotFoundError, StoreError
from leavesync.domain.staging import StagedSession

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)

SESSION_SUFFIX = ".json"


@cache
def _session_adapter() -> TypeAdapter[StagedSession]:
    return TypeAdapter(StagedSession)


class JsonStagingStore:
    """One JSON document per session, named after the session id.

    Writes go to a sibling temporary file that replaces the document, so a crash
    never leaves a half-written session behind.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, session_id: UUID) -> Path:
        return self._directory / f"{session_id}{SESSION_SUFFIX}"

    def save(self, session: StagedSession) -> Path:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(session.session_id)
        scratch = path.with_suffix(".tmp")
        scratch.write_bytes(_session_adapter().dump_json(session, indent=2))
        scratch.replace(path)
        log.debug("Saved session %s (revision %d)", session.session_id, session.revision)
        return path

    def load(self, session_id: UUID) -> StagedSession:
        path = self._path_for(session_id)
        if not path.exists():
            raise SessionNotFoundError(session_id)
        try:
            return _session_adapter().validate_json(path.read_bytes())
        except ValidationError as exc:
            raise StoreError(f"Session file {path} is corrupt") from exc

    def delete(self, session_id: UUID) -> bool:
        """Discard a session; deleting an unknown session is a no-op."""

        path = self._path_for(session_id)
        if not path.exists():
            return False
        path.unlink()
        log.info("Discarded session %s", session_id)
        return True

    def list_ids(self) -> list[UUID]:
        if not self._directory.exists():
            return []
        ids: list[UUID] = []
        for path in sorted(self._directory.glob(f"*{SESSION_SUFFIX}")):
            try:
                ids.append(UUID(path.stem))
            except ValueError:
                log.warning("Ignoring unexpected file in staging directory: %s", path.name)
        return ids
