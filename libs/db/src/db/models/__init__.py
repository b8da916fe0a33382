"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger models written by ``statement_import``.
"""

from .ledger import Base, SiImportPreset, SiImportRule, SiTransaction

__all__ = [
    "Base",
    "SiTransaction",
    "SiImportRule",
    "SiImportPreset",
]
