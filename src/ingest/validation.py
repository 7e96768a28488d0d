"""Row validation for the three catalog sources.

Each entity kind has one pydantic record model. ``validate_row`` turns a
normalized source row into either ``Accepted(record)`` or ``Skipped(reason)``;
the loader consumes both the same way regardless of entity kind.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator

from src.ingest.sources import SourceRow
from src.search.geo import GeoPoint

SYNONYM_SEPARATOR = "|"

_ID_RE = re.compile(r"^\d+$")


def _parse_id(v: Any) -> int:
    s = "" if v is None else str(v).strip()
    if not _ID_RE.match(s):
        raise ValueError("must be a non-negative integer")
    return int(s)


def _none_if_blank(v: Any) -> Optional[str]:
    s = "" if v is None else str(v).strip()
    return s or None


def split_synonyms(raw: Optional[str]) -> List[str]:
    """'amox | amoxil|' -> ['amox', 'amoxil']; order kept, blanks and repeats dropped."""
    s = (raw or "").strip()
    out: List[str] = []
    for token in s.split(SYNONYM_SEPARATOR):
        token = token.strip()
        if token and token not in out:
            out.append(token)
    return out


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


CatalogId = Annotated[int, BeforeValidator(_parse_id)]
OptionalText = Annotated[Optional[str], BeforeValidator(_none_if_blank)]


class ProductRecord(_Record):
    id: CatalogId
    name: str = Field(min_length=1)
    synonyms: List[str] = Field(default_factory=list)

    @field_validator("synonyms", mode="before")
    @classmethod
    def _split(cls, v: Any) -> List[str]:
        if isinstance(v, list):
            return v
        return split_synonyms(v)


class OutletRecord(_Record):
    id: CatalogId
    name: str = Field(min_length=1)
    address: str = ""
    region: OptionalText = None
    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _require_number(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("coordinate is missing")
        return v

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


class StockLinkRecord(_Record):
    outlet_id: CatalogId
    product_id: CatalogId


R = TypeVar("R", bound=_Record)


@dataclass(frozen=True)
class Accepted(Generic[R]):
    line: int
    record: R


@dataclass(frozen=True)
class Skipped:
    line: int
    reason: str


RowResult = Union[Accepted, Skipped]


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ())) or "row"
    return f"{where}: {err.get('msg', 'invalid')}"


def validate_row(model: Type[R], row: SourceRow) -> RowResult:
    """Validate one source row against a record model."""
    data = dict(row.fields)
    try:
        return Accepted(line=row.line, record=model.model_validate(data))
    except ValidationError as e:
        return Skipped(line=row.line, reason=_first_error(e))
