"""
Helpers for talking OData to the AdminService: string literal escaping,
query string construction, and null-safe field lookup across the
several names a field can go by depending on service version or join path.
"""

from typing import Any, Mapping, Sequence
from urllib.parse import quote

Row = Mapping[str, Any]

# ordered by preference. the first alias present on a row wins.
NAME_ALIASES = ("ResourceName", "MachineName", "MachineResourceName", "ComputerName", "Name")
RESOURCE_ID_ALIASES = ("ResourceId", "ResourceID", "MachineResourceId", "MachineResourceID")
PRIMARY_FLAG_ALIASES = ("IsPrimaryUser", "IsPrimary", "PrimaryUser")


def escape_literal(value: str) -> str:
    """
    Escape a value for use inside a single-quoted OData string literal.

    Embedded single quotes are doubled: `O'Brien` becomes `O''Brien`.
    Apply this exactly once, to raw user input, right before it is interpolated into a filter.
    """
    return value.replace("'", "''")


def build_query_string(filter: str | None = None, select: Sequence[str] | None = None) -> str:
    """
    Build the `$filter` / `$select` query string for an AdminService request.

    Each parameter is only included when provided. Values are percent-encoded
    as full query string components, so quotes, parens, commas and spaces in a filter
    expression all survive the trip intact.
    """
    params = []
    if filter:
        params.append(f"$filter={quote(filter, safe='')}")
    if select:
        params.append(f"$select={quote(','.join(select), safe=',')}")
    return "&".join(params)


def first_present(row: Row, aliases: Sequence[str]) -> Any:
    "Return the value of the first alias present on `row` with a non-null value, or None"
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def has_any_field(row: Row, aliases: Sequence[str]) -> bool:
    "True if any of `aliases` is part of this row's schema, regardless of its value"
    return any(alias in row for alias in aliases)


def as_bool(value: Any) -> bool:
    # flags may arrive as JSON booleans, 0/1, or "true"/"false" strings
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)
