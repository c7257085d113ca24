"""
catalog/store.py -- SQLAlchemy-backed persistence layer for catalog locations.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. LocationStore is the repository; writes go
through SQLAlchemy table objects, listings run the prebuilt query text from
query.options.QueryOptions on a scoped connection.

Security: all queries use bound parameters. The only hand-written SQL here is
the constant view DDL below.

Usage:
    store = LocationStore(Database("sqlite:///catalog.db"))
    location_id = store.add_location(Location(name="Rynek", ...))
    rows, total = store.list_locations(options)
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Float, ForeignKey, Integer, MetaData, String, Table, Text, text

from catalog.models import Location
from core.database import Database
from query.entities import LOCATIONS
from query.options import QueryOptions

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_locations = Table(
    "locations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("country", String(100), nullable=False),
    Column("city", String(100), nullable=False),
    Column("street", String(255), nullable=False),
    Column("longitude", Float, nullable=False),
    Column("latitude", Float, nullable=False),
)

_toilets = Table(
    "toilets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("id_location", Integer, ForeignKey("locations.id"), nullable=False),
    Column("price_min", Float),
    Column("price_max", Float),
    Column("description", Text),
    Column("rating", Float, nullable=False, server_default="0"),
    Column("vote_nr", Integer, nullable=False, server_default="0"),
    Column("date_added", String(32), nullable=False),
    Column("validated", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
)

# Column order matches query.entities.LOCATIONS.
_LOCATION_VIEW_DDL = """
CREATE VIEW IF NOT EXISTS location_view AS
SELECT
    t.id AS id,
    l.name AS name,
    l.country AS country,
    l.city AS city,
    l.street AS street,
    l.longitude AS longitude,
    l.latitude AS latitude,
    t.price_min AS price_min,
    t.price_max AS price_max,
    t.description AS description,
    t.rating AS rating,
    t.vote_nr AS vote_nr,
    t.date_added AS date_added,
    t.validated AS validated
FROM toilets t
JOIN locations l ON l.id = t.id_location
"""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LocationStore:
    def __init__(self, db: Database) -> None:
        self.db = db
        db.create_tables(metadata)
        self._ensure_location_view()

    def _ensure_location_view(self) -> None:
        """Create location_view if missing. Idempotent -- safe on every startup."""
        with self.db.begin() as conn:
            conn.execute(text(_LOCATION_VIEW_DDL))

    def add_location(self, location: Location) -> int:
        """Insert the place and its facility in one transaction; return the facility id.

        Either both rows are written or neither is.
        """
        with self.db.begin() as conn:
            loc_result = conn.execute(
                _locations.insert().values(
                    name=location.name,
                    country=location.country,
                    city=location.city,
                    street=location.street,
                    longitude=location.longitude,
                    latitude=location.latitude,
                )
            )
            location_id = loc_result.inserted_primary_key[0]
            toilet_result = conn.execute(
                _toilets.insert().values(
                    id_location=location_id,
                    price_min=location.price_min,
                    price_max=location.price_max,
                    description=location.description,
                    rating=0,
                    vote_nr=0,
                    date_added=_now_iso(),
                    validated=0,
                )
            )
            return toilet_result.inserted_primary_key[0]

    def list_locations(self, options: QueryOptions) -> tuple[list[dict], int]:
        """Return (rows, total) where total counts every row the filter matches."""
        query_text, params = options.to_select_query(LOCATIONS)
        rows = self.db.query(query_text, params)
        count_text, count_params = options.to_count_query(LOCATIONS)
        total = self.db.scalar(count_text, count_params) or 0
        return rows, total
