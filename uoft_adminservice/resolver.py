"""
Turn free-text search input into a list of device candidates.

Two search modes are supported: a hostname fragment matched against discovered systems,
and a username matched against user/device affinity (primary user) relationships.
"""

from typing import Iterable

import pydantic
from pydantic import BaseModel, ConfigDict

from . import logging
from .api import AdminServiceAPI
from .errors import ServiceError, ValidationError
from .odata import (
    NAME_ALIASES,
    PRIMARY_FLAG_ALIASES,
    RESOURCE_ID_ALIASES,
    Row,
    as_bool,
    escape_literal,
    first_present,
    has_any_field,
)

logger = logging.getLogger(__name__)

SYSTEM_CLASS = "SMS_R_System"
RELATIONSHIP_CLASS = "SMS_UserMachineRelationship"


class DeviceCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None
    resource_id: int | None = None

    @property
    def display(self) -> str:
        name = self.name or "<unknown name>"
        if self.resource_id is None:
            return f"{name} (ResourceId: none)"
        return f"{name} (ResourceId: {self.resource_id})"

    def sort_key(self):
        # candidates without a resource id sort first, ties broken by name
        return (self.resource_id is not None, self.resource_id or 0, self.name or "")


def _make_candidate(name, resource_id) -> DeviceCandidate:
    if name is not None and not isinstance(name, str):
        name = str(name)
    try:
        return DeviceCandidate(name=name, resource_id=resource_id)
    except pydantic.ValidationError as e:
        raise ServiceError(f"Unusable device record (name={name!r}, resource id={resource_id!r}): {e}") from e


def normalize(candidates: Iterable[DeviceCandidate]) -> list[DeviceCandidate]:
    "De-duplicate candidates on (resource_id, name) and sort them into a stable menu order"
    unique = {(c.resource_id, c.name): c for c in candidates}
    return sorted(unique.values(), key=DeviceCandidate.sort_key)


def _require_text(value: str, what: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{what} cannot be empty")
    return value


def find_by_hostname_fragment(api: AdminServiceAPI, fragment: str) -> list[DeviceCandidate]:
    """
    Find every discovered system whose name contains `fragment`.

    Returns an empty list when nothing matches.

    Raises:
        ValidationError: if `fragment` is empty or whitespace-only. No request is made.
    """
    fragment = _require_text(fragment, "Hostname")
    rows = api.query(
        SYSTEM_CLASS,
        filter=f"contains(Name,'{escape_literal(fragment)}')",
        select=["Name", "ResourceId"],
    )
    candidates = [
        _make_candidate(row.get("Name"), row.get("ResourceId"))
        for row in rows
        if row.get("Name") is not None or row.get("ResourceId") is not None
    ]
    logger.debug(f"{len(candidates)} system(s) matched hostname fragment '{fragment}'")
    return normalize(candidates)


def eligible_relationships(rows: list[Row]) -> list[Row]:
    """
    Narrow user/device relationships down to primary devices.

    If no row carries a primary flag at all, every relationship is eligible.
    If rows carry the flag but none of them is set, fall back to every relationship,
    so a user with no designated primary device still gets candidates.
    """
    if not any(has_any_field(row, PRIMARY_FLAG_ALIASES) for row in rows):
        logger.trace("Relationship rows have no primary flag, keeping all of them")
        return rows
    primary = [row for row in rows if as_bool(first_present(row, PRIMARY_FLAG_ALIASES))]
    if not primary:
        logger.debug("No relationship is flagged as primary, falling back to all relationships")
        return rows
    return primary


def candidate_from_relationship(row: Row) -> DeviceCandidate | None:
    name = first_present(row, NAME_ALIASES)
    resource_id = first_present(row, RESOURCE_ID_ALIASES)
    if name is None and resource_id is None:
        return None
    return _make_candidate(name, resource_id)


def find_by_username(api: AdminServiceAPI, username: str) -> list[DeviceCandidate]:
    """
    Find the devices associated with `username` through user/device affinity.

    Primary devices are preferred (see `eligible_relationships`). Relationship rows
    which name neither a device nor a resource id are dropped.

    Raises:
        ValidationError: if `username` is empty or whitespace-only. No request is made.
    """
    username = _require_text(username, "Username")
    # field names on this class vary between service versions, so no $select
    rows = api.query(
        RELATIONSHIP_CLASS,
        filter=f"contains(UniqueUserName,'{escape_literal(username)}')",
    )
    candidates = []
    for row in eligible_relationships(rows):
        candidate = candidate_from_relationship(row)
        if candidate is None:
            logger.trace(f"Dropping relationship with no device name or resource id: {row}")
            continue
        candidates.append(candidate)
    logger.debug(f"{len(candidates)} device(s) related to user '{username}'")
    return normalize(candidates)
