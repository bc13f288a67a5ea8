"""Public interface for the import-file adapter."""

from __future__ import annotations

from .schema import ImportFile, ImportFileInput, RequestPayload
from .translator import ImportFileError, load_import_file, parse_import_file, parse_request

__all__ = [
    "ImportFile",
    "ImportFileError",
    "ImportFileInput",
    "RequestPayload",
    "load_import_file",
    "parse_import_file",
    "parse_request",
]
