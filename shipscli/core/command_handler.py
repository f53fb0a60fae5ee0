"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), delegates the work
to the ShipmentTrackingService and renders the results through the
UserInterface. Service errors propagate to the caller, which decides the
exit status.
"""

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional

from shipscli.core.services.tracking_service import ShipmentTrackingService
from shipscli.domain.interfaces.user_interface import UserInterface
from shipscli.domain.models.references import (
    is_valid_bl_number,
    is_valid_booking_number,
    is_valid_container_number,
)
from shipscli.domain.models.shipment import ListOptions, ShipmentCreateRequest

logger = logging.getLogger(__name__)


def _not_found(message: str) -> Dict[str, Any]:
    return {"found": False, "message": message}


class CommandHandler:
    """Handles incoming commands and delegates to the tracking service."""

    def __init__(self, tracking_service: ShipmentTrackingService, ui: UserInterface):
        self.tracking_service = tracking_service
        self.ui = ui

    def _check_reference(self, label: str, number: Optional[str], validator: Callable[[str], bool]) -> None:
        # The API is the authority; a pattern mismatch only earns a warning
        if number and not validator(number.strip()):
            self.ui.display_warning(f"'{number}' does not look like a valid {label}; sending it anyway.")

    # --- Shipment management ---

    async def handle_create_shipment(
        self,
        bl_number: Optional[str] = None,
        container_number: Optional[str] = None,
        booking_number: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> None:
        """Handles 'create-shipment'."""
        request = ShipmentCreateRequest(
            bl_number=bl_number, container_number=container_number, booking_number=booking_number,
        )
        if not request.has_reference():
            raise ValueError("Provide at least one of --bl, --container or --booking.")

        self._check_reference("container number", container_number, is_valid_container_number)
        self._check_reference("Bill of Lading number", bl_number, is_valid_bl_number)
        self._check_reference("booking number", booking_number, is_valid_booking_number)

        logger.info(f"Handling 'create-shipment' for {request.to_body()}")
        result = await self.tracking_service.create_shipment(request, custom_reference=reference)
        if result.warning:
            self.ui.display_warning(result.warning)
        self.ui.display_result(result.to_dict())

    async def handle_get_shipment(self, shipment_id: str) -> None:
        shipment = await self.tracking_service.get_shipment_by_id(shipment_id)
        self.ui.display_result(shipment.to_dict())

    async def handle_refresh_shipment(self, shipment_id: str) -> None:
        """Handles 'refresh-shipment': re-polls the API, skipping the cache."""
        shipment = await self.tracking_service.refresh_shipment(shipment_id)
        self.ui.display_result(shipment.to_dict())

    async def handle_list_shipments(self, options: ListOptions) -> None:
        result = await self.tracking_service.list_shipments(options)
        self.ui.display_result(result.to_dict())

    # --- Tracking ---

    async def handle_track_bl(self, bl_number: str) -> None:
        self._check_reference("Bill of Lading number", bl_number, is_valid_bl_number)
        shipment = await self.tracking_service.track_by_bl(bl_number)
        if shipment is None:
            self.ui.display_result(_not_found(f"No shipment found for BL {bl_number}"))
            return
        self.ui.display_result(shipment.to_dict())

    async def handle_track_container(self, container_number: str) -> None:
        self._check_reference("container number", container_number, is_valid_container_number)
        shipment = await self.tracking_service.track_by_container(container_number)
        if shipment is None:
            self.ui.display_result(_not_found(f"No shipment found for container {container_number}"))
            return
        self.ui.display_result(shipment.to_dict())

    async def handle_track_booking(self, booking_number: str) -> None:
        self._check_reference("booking number", booking_number, is_valid_booking_number)
        shipment = await self.tracking_service.track_by_booking(booking_number)
        if shipment is None:
            self.ui.display_result(_not_found(f"No shipment found for booking {booking_number}"))
            return
        self.ui.display_result(shipment.to_dict())

    async def handle_search(self, reference: str) -> None:
        shipments = await self.tracking_service.search_by_reference(reference)
        self.ui.display_result({"shipments": [s.to_dict() for s in shipments], "count": len(shipments)})

    # --- Monitoring ---

    async def handle_active(self) -> None:
        shipments = await self.tracking_service.get_active_shipments()
        self.ui.display_result({"shipments": [s.to_dict() for s in shipments], "count": len(shipments)})

    async def handle_arriving_soon(self, days: int) -> None:
        shipments = await self.tracking_service.get_arriving_soon(days)
        self.ui.display_result({"days": days, "shipments": [s.to_dict() for s in shipments], "count": len(shipments)})

    async def handle_milestones(self, shipment_id: str) -> None:
        milestones = await self.tracking_service.get_milestones(shipment_id)
        self.ui.display_result({"shipment_id": shipment_id, "milestones": [asdict(m) for m in milestones]})

    async def handle_vessel_position(self, shipment_id: str) -> None:
        position = await self.tracking_service.get_vessel_position(shipment_id)
        if position is None:
            self.ui.display_result(_not_found(f"No vessel position available for shipment {shipment_id}"))
            return
        self.ui.display_result(asdict(position))

    async def handle_sharing_link(self, shipment_id: str) -> None:
        link = await self.tracking_service.get_sharing_link(shipment_id)
        if link is None:
            self.ui.display_result(_not_found(
                f"No sharing link available for shipment {shipment_id}. "
                "The map token may not be assigned yet; try again later."
            ))
            return
        self.ui.display_result(asdict(link))

    # --- Utilities ---

    async def handle_api_status(self) -> None:
        self.ui.display_result(await self.tracking_service.get_api_status())

    def handle_rate_limit(self) -> None:
        self.ui.display_result(self.tracking_service.get_rate_limit_status().to_dict())

    def handle_cache_stats(self) -> None:
        self.ui.display_result(self.tracking_service.get_cache_stats())

    async def handle_cache_clear(self) -> None:
        cleared = await self.tracking_service.clear_cache()
        self.ui.display_result({"cleared": cleared})

    async def handle_cache_invalidate(self, shipment_id: str) -> None:
        removed = await self.tracking_service.invalidate_shipment(shipment_id)
        self.ui.display_result({"shipment_id": shipment_id, "invalidated": removed})
