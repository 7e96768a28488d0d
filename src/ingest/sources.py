"""
Reading delimited source files into normalized rows keyed by canonical field names.

Column names differ between source versions (``lng`` vs ``longitude``,
``drug_id`` vs ``id``). Each source declares, per canonical field, the header
names it accepts; the mapping is resolved once against the file header and a
missing required field fails before anything is loaded.
"""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from src.exceptions import SourceSchemaError

logger = logging.getLogger(__name__)

_QUOTES = ("\"", "'")
_WS_RE = re.compile(r"\s+")

# Canonical fields each source must provide, and the ones it may provide.
REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "products": ("id", "name"),
    "outlets": ("id", "name", "latitude", "longitude"),
    "stock_links": ("outlet_id", "product_id"),
}
OPTIONAL_FIELDS: Dict[str, Tuple[str, ...]] = {
    "products": ("synonyms",),
    "outlets": ("address", "region"),
    "stock_links": (),
}


@dataclass(frozen=True)
class SourceRow:
    line: int
    fields: Dict[str, str]


@dataclass(frozen=True)
class ColumnMapping:
    """Canonical field -> column index, resolved against one file header."""

    source: str
    indexes: Dict[str, int]

    def extract(self, cells: Sequence[str]) -> Dict[str, str]:
        return {name: (cells[i] if i < len(cells) else "") for name, i in self.indexes.items()}


def normalize_cell(value: Optional[str]) -> str:
    """Trim, collapse whitespace runs and strip one layer of enclosing quotes."""
    s = _WS_RE.sub(" ", (value or "").replace("\ufeff", "")).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in _QUOTES:
        s = s[1:-1].strip()
    return s


def resolve_columns(source: str, header: Sequence[str], aliases: Mapping[str, Sequence[str]]) -> ColumnMapping:
    """
    Map canonical fields to header positions using the configured aliases.

    Raises:
        SourceSchemaError: if a required field matches no header column.
    """
    positions = {normalize_cell(h).lower(): i for i, h in reversed(list(enumerate(header)))}
    indexes: Dict[str, int] = {}
    for field_name in REQUIRED_FIELDS[source] + OPTIONAL_FIELDS[source]:
        for alias in aliases.get(field_name, ()):
            pos = positions.get(alias.strip().lower())
            if pos is not None:
                indexes[field_name] = pos
                break

    missing = [f for f in REQUIRED_FIELDS[source] if f not in indexes]
    if missing:
        raise SourceSchemaError(
            f"Source '{source}' is missing required column(s)",
            context={"missing": ",".join(missing), "header": ",".join(header)},
        )
    return ColumnMapping(source=source, indexes=indexes)


class TabularSource:
    """One delimited file plus its column aliases."""

    def __init__(
        self,
        name: str,
        path: Path,
        *,
        aliases: Mapping[str, Sequence[str]],
        delimiter: str = "\t",
        encoding: str = "utf-8-sig",
    ) -> None:
        if name not in REQUIRED_FIELDS:
            raise ValueError(f"Unknown source kind: {name}")
        self.name = name
        self.path = Path(path)
        self.aliases = dict(aliases)
        self.delimiter = delimiter
        self.encoding = encoding
        self._mapping: Optional[ColumnMapping] = None

    def _open(self):
        try:
            return open(self.path, "r", encoding=self.encoding, newline="")
        except OSError as e:
            raise SourceSchemaError(
                f"Cannot read source '{self.name}'", context={"path": str(self.path), "error": str(e)}
            ) from e

    def resolve(self) -> ColumnMapping:
        """Read the header and resolve the column mapping (cached)."""
        if self._mapping is None:
            with self._open() as f:
                header = next(csv.reader(f, delimiter=self.delimiter), None)
            if not header:
                raise SourceSchemaError(f"Source '{self.name}' is empty", context={"path": str(self.path)})
            self._mapping = resolve_columns(self.name, header, self.aliases)
            logger.debug("Resolved %s columns: %s", self.name, self._mapping.indexes)
        return self._mapping

    def rows(self) -> Iterator[SourceRow]:
        """Normalized data rows; fully empty rows are dropped."""
        mapping = self.resolve()
        with self._open() as f:
            reader = csv.reader(f, delimiter=self.delimiter)
            next(reader, None)
            for cells in reader:
                normalized = [normalize_cell(c) for c in cells]
                if not any(normalized):
                    continue
                yield SourceRow(line=reader.line_num, fields=mapping.extract(normalized))

    def read_all(self) -> List[SourceRow]:
        return list(self.rows())
