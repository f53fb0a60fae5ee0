"""Maps raw ShipsGo API payloads onto the domain Shipment model.

The API has returned both camelCase and snake_case field names over time,
so every logical field is resolved from an ordered tuple of candidate
names: the first one holding a value wins.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from shipscli.domain.models.shipment import (
    Coordinates,
    Milestone,
    PortOfDischarge,
    PortOfLoading,
    Shipment,
    ShipmentStatus,
    Vessel,
)

logger = logging.getLogger(__name__)

# --- Field name candidates, in order of preference ---
ID_FIELDS = ("id", "requestId", "request_id")
REQUEST_ID_FIELDS = ("requestId", "request_id")
STATUS_FIELDS = ("status", "shippingStatus", "shipping_status")
CONTAINER_FIELDS = ("containerNumber", "container_number")
BL_FIELDS = ("blNumber", "bl_number")
BOOKING_FIELDS = ("bookingNumber", "booking_number")
CARRIER_FIELDS = ("carrier", "shippingLine", "shipping_line")
CREATED_FIELDS = ("createdAt", "created_at")
UPDATED_FIELDS = ("updatedAt", "updated_at")
DISCARDED_FIELDS = ("discardedAt", "discarded_at")
REFERENCE_FIELDS = ("customReference", "custom_reference")

VESSEL_NAME_FIELDS = ("vesselName", "vessel_name")
VESSEL_IMO_FIELDS = ("vesselImo", "vessel_imo")

POL_NAME_FIELDS = ("portOfLoading", "port_of_loading")
POL_CODE_FIELDS = ("polCode", "pol_code")
POL_DEPARTURE_FIELDS = ("etd", "atd")
POD_NAME_FIELDS = ("portOfDischarge", "port_of_discharge")
POD_CODE_FIELDS = ("podCode", "pod_code")

MILESTONE_LIST_FIELDS = ("milestones", "events")
MILESTONE_EVENT_FIELDS = ("event", "description")
MILESTONE_TIMESTAMP_FIELDS = ("timestamp", "date")
MILESTONE_ACTUAL_FIELDS = ("isActual", "is_actual")

LAT_FIELDS = ("lat", "latitude")
LNG_FIELDS = ("lng", "longitude")

LIST_ENVELOPE_FIELDS = ("shipments", "data")

STATUS_SYNONYMS = {
    "PENDING": ShipmentStatus.PENDING,
    "INPROGRESS": ShipmentStatus.EN_ROUTE,
    "IN_PROGRESS": ShipmentStatus.EN_ROUTE,
    "IN_TRANSIT": ShipmentStatus.EN_ROUTE,
    "EN_ROUTE": ShipmentStatus.EN_ROUTE,
    "DISCHARGED": ShipmentStatus.ARRIVED,
    "ARRIVED": ShipmentStatus.ARRIVED,
    "DELIVERED": ShipmentStatus.DELIVERED,
    "DISCARDED": ShipmentStatus.DISCARDED,
    "NOT_FOUND": ShipmentStatus.NOT_FOUND,
}

_NON_STATUS_CHARS = re.compile(r"[^A-Z_]")


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def first_present(source: Optional[Mapping[str, Any]], names: Sequence[str], default: Any = None) -> Any:
    """Returns the value of the first name in `names` that holds a value."""
    if not isinstance(source, Mapping):
        return default
    for name in names:
        value = source.get(name)
        if _is_present(value):
            return value
    return default


def _as_str(value: Any) -> Optional[str]:
    return str(value) if _is_present(value) else None


def _as_mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def map_status(raw_status: Any) -> ShipmentStatus:
    """Normalizes an upstream status string. Unknown values become PENDING."""
    if not isinstance(raw_status, str) or not raw_status:
        return ShipmentStatus.PENDING
    normalized = _NON_STATUS_CHARS.sub("_", raw_status.upper())
    return STATUS_SYNONYMS.get(normalized, ShipmentStatus.PENDING)


def _map_vessel(raw: Mapping[str, Any]) -> Optional[Vessel]:
    vessel = raw.get("vessel")
    name = first_present(raw, VESSEL_NAME_FIELDS)
    if not _is_present(vessel) and name is None:
        return None
    if isinstance(vessel, str):
        return Vessel(name=vessel, imo=_as_str(first_present(raw, VESSEL_IMO_FIELDS)))
    vessel = _as_mapping(vessel)
    return Vessel(
        name=str(first_present(vessel, ("name",)) or name or ""),
        imo=_as_str(first_present(vessel, ("imo",)) or first_present(raw, VESSEL_IMO_FIELDS)),
    )


def _map_pol(raw: Mapping[str, Any]) -> Optional[PortOfLoading]:
    nested = raw.get("pol")
    name = first_present(raw, POL_NAME_FIELDS)
    code = first_present(raw, POL_CODE_FIELDS)
    if not _is_present(nested) and name is None and code is None:
        return None
    nested = _as_mapping(nested)
    return PortOfLoading(
        code=str(first_present(nested, ("code",)) or code or ""),
        name=str(first_present(nested, ("name",)) or (name if isinstance(name, str) else "") or ""),
        departure=_as_str(first_present(nested, ("departure",)) or first_present(raw, POL_DEPARTURE_FIELDS)),
    )


def _map_pod(raw: Mapping[str, Any]) -> Optional[PortOfDischarge]:
    nested = raw.get("pod")
    name = first_present(raw, POD_NAME_FIELDS)
    code = first_present(raw, POD_CODE_FIELDS)
    if not _is_present(nested) and name is None and code is None:
        return None
    nested = _as_mapping(nested)
    return PortOfDischarge(
        code=str(first_present(nested, ("code",)) or code or ""),
        name=str(first_present(nested, ("name",)) or (name if isinstance(name, str) else "") or ""),
        eta=_as_str(first_present(nested, ("eta",)) or first_present(raw, ("eta",))),
        ata=_as_str(first_present(nested, ("ata",)) or first_present(raw, ("ata",))),
    )


def _map_milestones(raw: Mapping[str, Any]) -> Optional[List[Milestone]]:
    events = None
    for name in MILESTONE_LIST_FIELDS:
        if isinstance(raw.get(name), list):
            events = raw[name]
            break
    if events is None:
        return None

    milestones = []
    for event in events:
        if not isinstance(event, Mapping):
            logger.debug(f"Skipping malformed milestone entry: {event!r}")
            continue
        is_actual = first_present(event, MILESTONE_ACTUAL_FIELDS, default=True)
        milestones.append(Milestone(
            event=str(first_present(event, MILESTONE_EVENT_FIELDS, default="")),
            location=_as_str(event.get("location")),
            timestamp=str(first_present(event, MILESTONE_TIMESTAMP_FIELDS, default="")),
            is_actual=bool(is_actual),
        ))
    return milestones


def _map_coordinates(raw: Mapping[str, Any]) -> Optional[Coordinates]:
    nested = raw.get("coordinates")
    if isinstance(nested, Mapping):
        lat = _to_float(first_present(nested, LAT_FIELDS))
        lng = _to_float(first_present(nested, LNG_FIELDS))
        if lat is not None and lng is not None:
            return Coordinates(lat=lat, lng=lng)

    lat = _to_float(raw.get("latitude"))
    lng = _to_float(raw.get("longitude"))
    if lat is not None and lng is not None:
        return Coordinates(lat=lat, lng=lng)
    return None


def map_to_shipment(raw: Mapping[str, Any]) -> Shipment:
    """Converts one raw shipment object into a Shipment."""
    if not isinstance(raw, Mapping):
        raise TypeError(f"Expected a JSON object for a shipment, got {type(raw).__name__}")

    return Shipment(
        id=str(first_present(raw, ID_FIELDS, default="")),
        request_id=_as_str(first_present(raw, REQUEST_ID_FIELDS)),
        status=map_status(first_present(raw, STATUS_FIELDS)),
        container_number=_as_str(first_present(raw, CONTAINER_FIELDS)),
        bl_number=_as_str(first_present(raw, BL_FIELDS)),
        booking_number=_as_str(first_present(raw, BOOKING_FIELDS)),
        carrier=_as_str(first_present(raw, CARRIER_FIELDS)),
        vessel=_map_vessel(raw),
        pol=_map_pol(raw),
        pod=_map_pod(raw),
        milestones=_map_milestones(raw),
        coordinates=_map_coordinates(raw),
        created_at=str(first_present(raw, CREATED_FIELDS) or _utc_now_iso()),
        updated_at=str(first_present(raw, UPDATED_FIELDS) or _utc_now_iso()),
        discarded_at=_as_str(first_present(raw, DISCARDED_FIELDS)),
        custom_reference=_as_str(first_present(raw, REFERENCE_FIELDS)),
    )


def extract_shipments(payload: Any) -> List[Dict[str, Any]]:
    """Unwraps the raw shipment list from a `{shipments|data: [...]}` envelope."""
    if isinstance(payload, list):
        return [s for s in payload if isinstance(s, dict)]
    for name in LIST_ENVELOPE_FIELDS:
        value = _as_mapping(payload).get(name)
        if isinstance(value, list):
            return [s for s in value if isinstance(s, dict)]
    return []
