"""
Error taxonomy shared by the catalog store, ingestion pipeline and engines.

Every error carries a short machine-checkable ``kind`` so the API boundary can
report it without leaking storage detail.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CatalogError(Exception):
    """Base class for all catalog errors."""

    kind = "internal_error"

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ValidationError(CatalogError):
    """Bad or missing request parameters. Never retried."""

    kind = "validation_error"


class InvalidArgument(ValidationError):
    """An engine precondition was violated by the caller."""

    kind = "invalid_argument"


class IntegrityError(CatalogError):
    """Uniqueness or referential constraint violated while loading."""

    kind = "integrity_error"


class ConflictError(CatalogError):
    """Another load is already in flight."""

    kind = "conflict"


class StorageUnavailable(CatalogError):
    """Backing store unreachable, pool exhausted, or the call timed out."""

    kind = "storage_unavailable"


class StorageError(CatalogError):
    """The database rejected a statement (missing table, bad data, driver error)."""

    kind = "storage_error"


class LoadStateError(CatalogError):
    """A write, commit or rollback was issued without an open load."""

    kind = "load_state_error"


class SourceSchemaError(CatalogError):
    """A source file is unreadable or lacks a required column."""

    kind = "source_schema_error"
