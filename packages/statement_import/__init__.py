"""Public interface for the ``statement_import`` package.

This module exposes the package's API functions, public models and error types
as the stable import surface. There is no runtime logic here, only symbol
re-exports.
"""

from .api import (
    apply_rules_to_existing,
    build_job_queue,
    commit,
    delete_rule,
    detect_columns,
    job_status,
    list_rules,
    preview,
    save_preset,
    save_rule,
)
from .errors import ImportRejected, QueueUnavailable, RowValueError
from .models import (
    ColumnMapping,
    CommitOptions,
    CommitResult,
    DetectedColumns,
    FileKind,
    ImportableTransaction,
    ImportPreset,
    ImportRowError,
    ImportRule,
    JobStatus,
    PreviewResult,
    PreviewRow,
    QueuedCommit,
    RuleAction,
    RuleCondition,
    SignPolicy,
    TransactionType,
)
from .settings import ImportSettings

__all__ = [
    # API
    "detect_columns",
    "preview",
    "commit",
    "job_status",
    "build_job_queue",
    "save_rule",
    "list_rules",
    "delete_rule",
    "apply_rules_to_existing",
    "save_preset",
    # Models / types
    "FileKind",
    "TransactionType",
    "SignPolicy",
    "ColumnMapping",
    "ImportableTransaction",
    "ImportRowError",
    "DetectedColumns",
    "PreviewRow",
    "PreviewResult",
    "CommitOptions",
    "CommitResult",
    "QueuedCommit",
    "JobStatus",
    "ImportRule",
    "RuleCondition",
    "RuleAction",
    "ImportPreset",
    "ImportSettings",
    # Errors
    "ImportRejected",
    "RowValueError",
    "QueueUnavailable",
]
