"""
query/options.py -- Pagination, projection and filter assembly.

QueryOptionsBuilder is the only place that validates listing input:

    builder = QueryOptionsBuilder(LOCATIONS)
    options = builder.build(limit=10, offset=0, fields=["id", "name"],
                            filter_expr="price_min > 5 AND city = 'Krakow'")
    text, params = options.to_select_query(LOCATIONS)
    # SELECT id, name FROM location_view WHERE (price_min > ? AND city = ?) LIMIT 10 OFFSET 0
    # params == [5, 'Krakow']

QueryOptions itself never validates -- it only renders what the builder has
already checked. That keeps the SQL templates trivially auditable:

  - column names come from the Entity allow-list, never from raw input;
  - limit and offset are validated ints and are rendered literally;
  - every filter value is a `?` placeholder, passed positionally in params.

The `?` placeholder is the qmark paramstyle of the sqlite3 driver. Stores
execute the text with Connection.exec_driver_sql(), which hands it to the
driver unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from core.errors import ValidationError
from query.entities import Entity
from query.filters import Comparison, FilterNode, Value, iter_comparisons, parse_filter

logger = logging.getLogger("catalog.query")

MIN_LIMIT = 1
MAX_LIMIT = 200
ALL_FIELDS = "*"

# "!=" is rendered in its portable SQL spelling.
_SQL_OPERATORS = {"=": "=", "!=": "<>", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


@dataclass(frozen=True)
class QueryOptions:
    """A validated listing request. Build it with QueryOptionsBuilder.build()."""

    limit: int
    offset: int
    fields: tuple[str, ...]
    filter: Optional[FilterNode] = None
    filter_params: tuple[Value, ...] = ()

    def _where_clause(self) -> str:
        if self.filter is None:
            return ""
        return " WHERE " + _render(self.filter)

    def to_select_query(self, entity: Entity) -> tuple[str, list[Value]]:
        """Return (text, params) for a bounded, paginated projection over entity."""
        text = (
            f"SELECT {', '.join(self.fields)} FROM {entity.table}"  # nosec B608 -- allow-listed names only
            f"{self._where_clause()} LIMIT {int(self.limit)} OFFSET {int(self.offset)}"
        )
        return text, list(self.filter_params)

    def to_count_query(self, entity: Entity) -> tuple[str, list[Value]]:
        """Return (text, params) counting every row the filter matches; ignores limit/offset."""
        text = f"SELECT COUNT(*) FROM {entity.table}{self._where_clause()}"  # nosec B608
        return text, list(self.filter_params)


def _render(node: FilterNode) -> str:
    """Render a tree as SQL with one `?` per comparison, in left-to-right order."""
    if isinstance(node, Comparison):
        return f"{node.column} {_SQL_OPERATORS[node.operator]} ?"
    return f"({_render(node.left)} {node.op} {_render(node.right)})"


class QueryOptionsBuilder:
    """Validates client listing input against one entity's allow-list."""

    def __init__(self, entity: Entity) -> None:
        self.entity = entity

    def build(
        self,
        limit: int,
        offset: int,
        fields: Sequence[str],
        filter_expr: Optional[str] = None,
    ) -> QueryOptions:
        """Validate input and assemble QueryOptions.

        Raises ValidationError (invalid_limit, invalid_offset, no_fields,
        unknown_column) or ParseError. Nothing here touches the database.
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or not MIN_LIMIT <= limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be an integer between {MIN_LIMIT} and {MAX_LIMIT}.", "invalid_limit")
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset must be a non-negative integer.", "invalid_offset")

        columns = self._validate_fields(fields)

        tree: Optional[FilterNode] = None
        params: tuple[Value, ...] = ()
        if filter_expr is not None and filter_expr.strip():
            tree = parse_filter(filter_expr)
            leaves = list(iter_comparisons(tree))
            for leaf in leaves:
                self._check_column(leaf.column)
            params = tuple(leaf.value for leaf in leaves)

        return QueryOptions(limit=limit, offset=offset, fields=columns, filter=tree, filter_params=params)

    def _validate_fields(self, fields: Sequence[str]) -> tuple[str, ...]:
        requested = [f.strip() for f in fields if f and f.strip()]
        if not requested:
            raise ValidationError("At least one field must be requested.", "no_fields")
        seen: dict[str, None] = {}
        for column in requested:
            if column == ALL_FIELDS:
                continue
            self._check_column(column)
            seen.setdefault(column, None)
        if ALL_FIELDS in requested:
            return self.entity.columns
        return tuple(seen)

    def _check_column(self, column: str) -> None:
        if not self.entity.has_column(column):
            logger.info("Rejected unknown column %r for %s", column, self.entity.name)
            raise ValidationError(f"Unknown column '{column}' for {self.entity.name}.", "unknown_column")


def split_fields(raw: str) -> list[str]:
    """Split a comma-separated `fields` query parameter."""
    return [part.strip() for part in raw.split(",") if part.strip()]
