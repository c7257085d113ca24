"""
query/entities.py -- Fixed column allow-lists per queryable entity.

An Entity names the relation a listing reads from and the only column names a
client may project or filter on. Anything outside `columns` is rejected by
QueryOptionsBuilder before any SQL is produced, so column names reaching the
query text always come from this module, never from request input.

The users allow-list deliberately leaves out password_hash and salt.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Entity:
    name: str
    table: str
    columns: tuple[str, ...]

    def has_column(self, column: str) -> bool:
        return column in self.columns


USERS = Entity(
    name="Users",
    table="users",
    columns=("id", "username", "email", "permissions"),
)

# location_view joins locations with toilets (see catalog/store.py).
LOCATIONS = Entity(
    name="Locations",
    table="location_view",
    columns=(
        "id",
        "name",
        "country",
        "city",
        "street",
        "longitude",
        "latitude",
        "price_min",
        "price_max",
        "description",
        "rating",
        "vote_nr",
        "date_added",
        "validated",
    ),
)

ENTITIES: dict[str, Entity] = {e.name: e for e in (USERS, LOCATIONS)}
