"""Mapping of catalog errors to HTTP-style error envelopes."""
from typing import Any, Dict, Optional, Tuple
import logging

from src.exceptions import CatalogError, StorageUnavailable, ValidationError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorHandler:
    def handle_exception(self, exc: Exception, context: Optional[Dict[str, Any]] = None) -> Tuple[int, Dict[str, Any]]:
        """
        Returns (status_code, body). Client errors echo their message; server
        errors get a generic message plus a machine-checkable kind, with detail
        kept in the server log only.
        """
        if isinstance(exc, ValidationError):
            logger.info("Rejected request: %s", exc)
            return 400, {"error": exc.message, "kind": exc.kind}

        if isinstance(exc, StorageUnavailable):
            logger.error("Catalog storage unavailable: %s context=%s", exc, context or {}, exc_info=exc)
            return 500, {"error": INTERNAL_ERROR_MESSAGE, "kind": exc.kind}

        kind = exc.kind if isinstance(exc, CatalogError) else "internal_error"
        logger.error("Unhandled exception in catalog request: %s context=%s", exc, context or {}, exc_info=exc)
        return 500, {"error": INTERNAL_ERROR_MESSAGE, "kind": kind}
