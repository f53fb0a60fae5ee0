"""Domain models for ocean shipment tracking.

Canonical shapes the rest of the application works with, independent of
the field naming the ShipsGo API happens to use in a given response.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class ShipmentStatus(str, Enum):
    """Lifecycle status of a tracked shipment."""
    PENDING = "PENDING"
    EN_ROUTE = "EN_ROUTE"
    ARRIVED = "ARRIVED"
    DELIVERED = "DELIVERED"
    DISCARDED = "DISCARDED"
    NOT_FOUND = "NOT_FOUND"


def _drop_empty(value: Any) -> Any:
    """Recursively removes None values and renders enums by value."""
    if isinstance(value, dict):
        return {k: _drop_empty(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_empty(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


# --- Value Objects ---

@dataclass(frozen=True)
class Vessel:
    name: str
    imo: Optional[str] = None


@dataclass(frozen=True)
class PortOfLoading:
    code: str
    name: str
    departure: Optional[str] = None


@dataclass(frozen=True)
class PortOfDischarge:
    code: str
    name: str
    eta: Optional[str] = None
    ata: Optional[str] = None


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class Milestone:
    """A single tracking event. Order is whatever the upstream array used."""
    event: str
    timestamp: str
    location: Optional[str] = None
    is_actual: bool = True


# --- Entity ---

@dataclass(frozen=True)
class Shipment:
    """Canonical tracking record.

    Instances are never edited in place; a fresher API response is mapped
    into a new Shipment instead.
    """
    id: str
    status: ShipmentStatus
    created_at: str
    updated_at: str
    request_id: Optional[str] = None
    container_number: Optional[str] = None
    bl_number: Optional[str] = None
    booking_number: Optional[str] = None
    carrier: Optional[str] = None
    vessel: Optional[Vessel] = None
    pol: Optional[PortOfLoading] = None
    pod: Optional[PortOfDischarge] = None
    milestones: Optional[List[Milestone]] = None
    coordinates: Optional[Coordinates] = None
    discarded_at: Optional[str] = None
    custom_reference: Optional[str] = None

    @property
    def is_discarded(self) -> bool:
        return bool(self.discarded_at)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation with unset fields omitted."""
        return _drop_empty(asdict(self))


# --- Requests ---

@dataclass
class ShipmentCreateRequest:
    """Body of POST /ocean/shipments. The API expects a flat structure."""
    bl_number: Optional[str] = None
    container_number: Optional[str] = None
    booking_number: Optional[str] = None
    shipment_type: str = "ocean"

    def has_reference(self) -> bool:
        return bool(self.bl_number or self.container_number or self.booking_number)

    def to_body(self) -> Dict[str, str]:
        body = {"shipment_type": self.shipment_type}
        if self.bl_number:
            body["bl_number"] = self.bl_number
        if self.container_number:
            body["container_number"] = self.container_number
        if self.booking_number:
            body["booking_number"] = self.booking_number
        return body


@dataclass
class ListOptions:
    """Filters for GET /ocean/shipments."""
    status: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    eta_from: Optional[str] = None
    eta_to: Optional[str] = None
    sort: Optional[str] = None
    order: Optional[str] = None  # 'asc' or 'desc'

    def to_params(self) -> Dict[str, Any]:
        # Zero limit/offset are dropped, matching the API's own defaults
        return {k: v for k, v in asdict(self).items() if v}


# --- Results ---

@dataclass
class ShipmentList:
    shipments: List[Shipment]
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"shipments": [s.to_dict() for s in self.shipments], "count": self.count}


@dataclass
class CreateResult:
    """Outcome of a create-or-fetch call.

    `source` is 'cache', 'created' or 'existing'. Auxiliary failures that did
    not stop the shipment from being tracked end up in `warnings`.
    """
    shipment: Shipment
    source: str
    credit_used: bool
    warnings: List[str] = field(default_factory=list)

    @property
    def warning(self) -> Optional[str]:
        return "; ".join(self.warnings) if self.warnings else None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "shipment": self.shipment.to_dict(),
            "source": self.source,
            "credit_used": self.credit_used,
        }
        if self.warnings:
            result["warning"] = self.warning
        return result


@dataclass(frozen=True)
class VesselPosition:
    lat: float
    lng: float
    vessel: str


@dataclass(frozen=True)
class SharingLinkResult:
    """Public tracking link plus a short summary of the shipment."""
    url: str
    shipment_id: str
    status: str
    container_number: Optional[str] = None
    pol: Optional[str] = None
    pod: Optional[str] = None
    eta: Optional[str] = None
