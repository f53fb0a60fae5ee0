"""Best-match selection among shipments returned for one reference.

A BL or booking can map to several tracking entries (re-used numbers,
re-created shipments). The canonical one is the live shipment furthest
along an active lifecycle, newest first.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

from shipscli.domain.models.shipment import Shipment, ShipmentStatus

STATUS_PRIORITY = {
    ShipmentStatus.EN_ROUTE: 0,
    ShipmentStatus.PENDING: 1,
    ShipmentStatus.ARRIVED: 2,
    ShipmentStatus.DELIVERED: 3,
    ShipmentStatus.DISCARDED: 4,
    ShipmentStatus.NOT_FOUND: 5,
}
UNKNOWN_PRIORITY = 5


def _created_timestamp(shipment: Shipment) -> float:
    """Epoch seconds of `created_at`; unparseable values sort as oldest."""
    value = shipment.created_at or ""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return float("-inf")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _sort_key(shipment: Shipment):
    return (STATUS_PRIORITY.get(shipment.status, UNKNOWN_PRIORITY), -_created_timestamp(shipment))


def select_best_match(candidates: Sequence[Shipment]) -> Optional[Shipment]:
    """Picks the canonical shipment among candidates for one reference query.

    Discarded shipments are dropped, the rest ordered by status priority
    then creation time (newest first); `sorted` is stable, so remaining ties
    keep upstream order. If every candidate is discarded the first one in
    upstream order is returned unsorted.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    live = [s for s in candidates if not s.is_discarded]
    if not live:
        return candidates[0]
    return sorted(live, key=_sort_key)[0]
