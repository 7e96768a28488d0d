"""Autocomplete over product names (synonyms are not suggested)."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from src.exceptions import InvalidArgument

logger = logging.getLogger(__name__)


class SuggestionEngine:
    def __init__(self, store: Any, *, min_prefix_length: int = 2, default_limit: int = 10) -> None:
        self.store = store
        self.min_prefix_length = min_prefix_length
        self.default_limit = default_limit

    def suggest(self, prefix: Optional[str], limit: Optional[int] = None) -> List[str]:
        """Case-insensitive starts-with match, lexicographic, capped at ``limit``."""
        needle = (prefix or "").strip()
        if len(needle) < self.min_prefix_length:
            return []
        k = self.default_limit if limit is None else limit
        if not isinstance(k, int) or k < 1:
            raise InvalidArgument("Limit must be a positive integer", context={"limit": limit})
        names = self.store.suggest_by_prefix(needle, k)
        logger.debug("Suggest %r -> %d names", needle, len(names))
        return names
