from typing import Sequence

from pydantic import BaseModel

from . import logging
from .api import AdminServiceAPI
from .resolver import DeviceCandidate

logger = logging.getLogger(__name__)

BIOS_CLASS = "SMS_G_System_PC_BIOS"
SERIAL_NOT_FOUND = "N/A (Not in Hardware Inventory)"


class ResultRow(BaseModel):
    hostname: str
    serial_number: str


def resolve_serial(api: AdminServiceAPI, resource_id: int | None) -> str:
    """
    Look up the BIOS serial number hardware inventory recorded for `resource_id`.

    Never returns None: a device with no BIOS record, or a record with a blank serial,
    resolves to `SERIAL_NOT_FOUND`. If hardware inventory holds more than one BIOS record
    for the device, the first one wins.
    """
    if resource_id is None:
        logger.debug("No resource id to look up a serial number for")
        return SERIAL_NOT_FOUND
    rows = api.query(BIOS_CLASS, filter=f"ResourceId eq {int(resource_id)}", select=["SerialNumber"])
    if not rows:
        logger.debug(f"No hardware inventory BIOS record for ResourceId {resource_id}")
        return SERIAL_NOT_FOUND
    if len(rows) > 1:
        logger.trace(f"{len(rows)} BIOS records for ResourceId {resource_id}, using the first")
    serial = rows[0].get("SerialNumber")
    if serial is None or not str(serial).strip():
        return SERIAL_NOT_FOUND
    return str(serial).strip()


def resolve_serials(api: AdminServiceAPI, candidates: Sequence[DeviceCandidate]) -> list[ResultRow]:
    "Resolve a serial number for every candidate. Any failure loses the whole batch."
    rows = []
    for candidate in candidates:
        hostname = candidate.name or f"ResourceId {candidate.resource_id}"
        rows.append(ResultRow(hostname=hostname, serial_number=resolve_serial(api, candidate.resource_id)))
    return rows
