import asyncio
import logging
from typing import Any, Callable, List, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.error_handler import ErrorHandler
from src.exceptions import StorageUnavailable, ValidationError
from src.search.geo import GeoPoint

logger = logging.getLogger(__name__)

router = APIRouter()
error_handler = ErrorHandler()

REQUIRED_PARAMS_MESSAGE = "medicine, lat, lng & radius are required"


class SearchQuery(BaseModel):
    medicine: str
    lat: float
    lng: float
    radius: int


class SearchResultOut(BaseModel):
    outlet_id: int
    name: str
    address: str
    lat: float
    lng: float
    distance_km: float
    matched_product_names: List[str]


class SearchResponse(BaseModel):
    query: SearchQuery
    results: List[SearchResultOut]


class SuggestResponse(BaseModel):
    suggestions: List[str]


def parse_search_params(
    medicine: Optional[str],
    lat: Optional[str],
    lng: Optional[str],
    radius: Optional[str],
) -> SearchQuery:
    """Raw query-string values -> SearchQuery. Raises ValidationError (HTTP 400)."""
    if not medicine or not medicine.strip() or not lat or not lng or not radius:
        raise ValidationError(REQUIRED_PARAMS_MESSAGE)
    try:
        flat = float(lat)
        flng = float(lng)
    except ValueError:
        raise ValidationError("lat and lng must be numbers") from None
    try:
        radius_km = int(radius.strip())
    except ValueError:
        raise ValidationError("radius must be a whole number of kilometers") from None
    if radius_km <= 0:
        raise ValidationError("radius must be greater than zero")
    GeoPoint.parse(flat, flng)
    return SearchQuery(medicine=medicine, lat=flat, lng=flng, radius=radius_km)


async def run_bounded(fn: Callable[..., Any], *args: Any, timeout_s: float) -> Any:
    """Run a blocking engine call in a worker thread, bounded by ``timeout_s``."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise StorageUnavailable("Catalog request timed out", context={"timeout_s": timeout_s}) from e


def _error_response(exc: Exception, endpoint: str) -> JSONResponse:
    status_code, body = error_handler.handle_exception(exc, context={"endpoint": endpoint})
    return JSONResponse(status_code=status_code, content=body)


@router.get("/search", response_model=SearchResponse)
async def search(
    request: Request,
    medicine: Optional[str] = Query(default=None),
    lat: Optional[str] = Query(default=None),
    lng: Optional[str] = Query(default=None),
    radius: Optional[str] = Query(default=None, description="Radius in km"),
):
    state = request.app.state
    try:
        q = parse_search_params(medicine, lat, lng, radius)
        results = await run_bounded(
            state.search_engine.search,
            q.medicine,
            GeoPoint(q.lat, q.lng),
            q.radius * 1000,
            timeout_s=state.config.search.request_timeout_s,
        )
    except Exception as e:
        return _error_response(e, "search")

    return SearchResponse(query=q, results=[SearchResultOut(**r.to_dict()) for r in results])


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(request: Request, prefix: Optional[str] = Query(default=None)):
    state = request.app.state
    engine = state.suggestion_engine
    if len((prefix or "").strip()) < engine.min_prefix_length:
        return SuggestResponse(suggestions=[])
    try:
        names = await run_bounded(engine.suggest, prefix, timeout_s=state.config.search.request_timeout_s)
    except Exception as e:
        return _error_response(e, "suggest")
    return SuggestResponse(suggestions=names)
