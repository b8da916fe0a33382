"""Exception taxonomy for the import pipeline.

- :class:`ImportRejected` fails a whole request before any row is normalized
  (client error). ``reason`` is a stable machine-readable code.
- :class:`RowValueError` is raised by the row mapper for a single bad row; the
  parser turns it into an :class:`~statement_import.models.ImportRowError`.
- :class:`QueueUnavailable` signals that an asynchronous commit was requested
  without a job queue collaborator.
"""

from __future__ import annotations

from typing import Literal

type RejectionReason = Literal[
    "unsupported_file_type",
    "file_too_large",
    "missing_columns",
    "unknown_columns",
    "no_header",
    "sheet_not_found",
    "unreadable_file",
    "invalid_mapping",
]


class ImportRejected(ValueError):
    """The uploaded file or its mapping cannot be imported at all."""

    def __init__(self, reason: RejectionReason, message: str) -> None:
        super().__init__(message)
        self.reason: RejectionReason = reason


class RowValueError(ValueError):
    """A single row failed normalization on ``field``."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class QueueUnavailable(RuntimeError):
    """No job queue is configured for asynchronous commits."""


__all__ = [
    "RejectionReason",
    "ImportRejected",
    "RowValueError",
    "QueueUnavailable",
]
