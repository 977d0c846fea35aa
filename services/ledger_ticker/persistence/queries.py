"""
Query Helpers

Small builders shared by the repositories:
- build_upsert_query: INSERT ... ON CONFLICT DO UPDATE with per-column policy
- OptionalVar / generate_where_clause: parameterized filters that skip
  unset values
- parse_pair_name: split "BASE_COUNTER" trade pair names
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from ..core.errors import InvalidPairNameError

PAIR_SEPARATOR = "_"

QueryValue = Union[str, bool, int, float]


def build_upsert_query(
    table: str,
    fields: Sequence[str],
    conflict_fields: Sequence[str],
    preserve_fields: Sequence[str] = (),
    coalesce_fields: Sequence[str] = (),
    returning: Optional[str] = None,
) -> str:
    """
    Build a parameterized upsert.

    Args:
        table: Target table
        fields: Inserted columns, bound to $1..$N in order
        conflict_fields: Columns of the unique constraint
        preserve_fields: Columns never overwritten on conflict
        coalesce_fields: Columns overwritten only by non-NULL values
        returning: Optional RETURNING expression

    Returns:
        SQL string
    """
    if not fields:
        raise ValueError("upsert needs at least one field")

    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))

    updates = []
    for field in fields:
        if field in conflict_fields or field in preserve_fields:
            continue
        if field in coalesce_fields:
            updates.append(f"{field} = COALESCE(EXCLUDED.{field}, {table}.{field})")
        else:
            updates.append(f"{field} = EXCLUDED.{field}")

    conflict = ", ".join(conflict_fields)
    if updates:
        action = "DO UPDATE SET " + ", ".join(updates)
    else:
        action = "DO NOTHING"

    query = f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) ON CONFLICT ({conflict}) {action}"
    if returning:
        query += f" RETURNING {returning}"
    return query


@dataclass(frozen=True)
class OptionalVar:
    """
    A filter column with an optional value.

    Unset (None) values are left out of the WHERE clause. Values must be
    str, bool, int or float; anything else is rejected at construction.
    """

    column: str
    value: Optional[QueryValue] = None

    def __post_init__(self):
        if not isinstance(self.column, str) or not self.column:
            raise TypeError(f"OptionalVar column must be a non-empty str, got {self.column!r}")
        if self.value is not None and not isinstance(self.value, (str, bool, int, float)):
            raise TypeError(
                f"OptionalVar {self.column} has unsupported value type {type(self.value).__name__}"
            )

    @property
    def is_set(self) -> bool:
        return self.value is not None


def generate_where_clause(
    variables: Sequence[OptionalVar], start_index: int = 1
) -> tuple[str, list[Any]]:
    """
    Build "WHERE a = $1 AND b = $2" from the set variables.

    Returns:
        (clause, args); clause is "" when no variable is set
    """
    conditions = []
    args: list[Any] = []
    for var in variables:
        if not var.is_set:
            continue
        args.append(var.value)
        conditions.append(f"{var.column} = ${start_index + len(args) - 1}")

    if not conditions:
        return "", args
    return "WHERE " + " AND ".join(conditions), args


def parse_pair_name(pair_name: str) -> tuple[str, str]:
    """
    Split a trade pair name into (base_code, counter_code).

    Raises:
        InvalidPairNameError: Unless the name is exactly two non-empty codes
            joined by "_"
    """
    parts = pair_name.split(PAIR_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidPairNameError(f"invalid trade pair name: {pair_name!r}")
    return parts[0], parts[1]
