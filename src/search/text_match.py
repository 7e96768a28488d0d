"""
Token matching over product names and synonyms.

Mirrors what ``to_tsvector(...) @@ plainto_tsquery(...)`` does in Postgres
closely enough for the in-memory store: lowercase word tokens, common English
stop words dropped, plurals folded, and every query term must be present.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, List

_STOP_WORDS: FrozenSet[str] = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "in",
        "is", "it", "of", "on", "or", "the", "to", "with",
    }
)


def _tokenize(text: str) -> List[str]:
    """Lowercase word tokens."""
    return re.findall(r"\b\w+\b", (text or "").lower())


def fold_plural(token: str) -> str:
    """Porter step 1a: 'tablets' -> 'tablet', 'capsules' -> 'capsule', 'remedies' -> 'remedi'."""
    if token.endswith("sses"):
        return token[:-2]
    if token.endswith("ies") and len(token) > 4:
        return token[:-2]
    if token.endswith("s") and not token.endswith(("ss", "us")) and len(token) > 3:
        return token[:-1]
    return token


def index_terms(texts: Iterable[str]) -> FrozenSet[str]:
    """Normalized term set for the indexed surface of one product."""
    terms = set()
    for text in texts:
        for tok in _tokenize(text):
            if tok not in _STOP_WORDS:
                terms.add(fold_plural(tok))
    return frozenset(terms)


def query_terms(query: str) -> List[str]:
    """Normalized, de-duplicated query terms in their original order."""
    out: List[str] = []
    for tok in _tokenize(query):
        if tok in _STOP_WORDS:
            continue
        term = fold_plural(tok)
        if term not in out:
            out.append(term)
    return out


def matches(terms: List[str], indexed: FrozenSet[str]) -> bool:
    """AND-of-terms: every query term must occur in the indexed surface."""
    return bool(terms) and all(t in indexed for t in terms)
