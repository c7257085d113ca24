"""
api/routes/v1/locations.py -- Location catalog REST endpoints.

Routes:
  GET  /api/v1/query/locations   -- parse a filter expression and return its tree (public)
  GET  /api/v1/locations         -- paginated, projected, filtered listing (requires auth)
  POST /api/v1/locations         -- add a location (requires auth)

Listing input is validated by QueryOptionsBuilder before the store runs
anything: a bad count, offset, field or filter is a 400 with no query issued.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import FilterParseResponse, ListingResponse, LocationCreate, ResultResponse
from auth.dependencies import require_user
from auth.models import TokenClaim
from catalog.models import Location
from catalog.store import LocationStore
from query.entities import LOCATIONS
from query.filters import filter_to_dict, parse_filter
from query.options import MAX_LIMIT, QueryOptionsBuilder, split_fields

logger = logging.getLogger("catalog.api.locations")

router = APIRouter()


@router.get("/query/locations", response_model=FilterParseResponse)
def parse_location_filter(
    request: Request,
    where: str = Query(..., max_length=1000, description="Filter expression to parse."),
) -> FilterParseResponse:
    """Return the parsed tree for a filter expression without running it.

    Pure syntax: column names are not checked here.
    """
    tree = parse_filter(where)
    return FilterParseResponse(expression=where, tree=filter_to_dict(tree))


@router.get("/locations", response_model=ListingResponse)
def list_locations(
    request: Request,
    fields: str = Query(..., description="Comma-separated columns, or * for all."),
    count: int = Query(MAX_LIMIT, description="Max records in response (1-200)."),
    offset: int = Query(0, description="Records to skip."),
    where: Optional[str] = Query(None, description="Filter expression, e.g. price_min > 5 AND city = 'Krakow'."),
    claim: TokenClaim = Depends(require_user),
) -> ListingResponse:
    """Return one page of locations plus the total number of matches."""
    options = QueryOptionsBuilder(LOCATIONS).build(count, offset, split_fields(fields), where)
    store: LocationStore = request.app.state.location_store
    rows, total = store.list_locations(options)
    return ListingResponse(count=len(rows), offset=options.offset, total=total, data=rows)


@router.post("/locations", response_model=ResultResponse, status_code=201)
def add_location(
    request: Request,
    body: LocationCreate,
    claim: TokenClaim = Depends(require_user),
) -> ResultResponse:
    """Add a place and its facility. New entries start unvalidated."""
    store: LocationStore = request.app.state.location_store
    location_id = store.add_location(Location(**body.model_dump()))
    logger.info("Location %s added by user_id=%s", location_id, claim.subject_id)
    return ResultResponse(message="Location added.", id=location_id)
