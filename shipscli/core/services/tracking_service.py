"""Tracking Service: credit-aware shipment tracking on top of the ShipsGo API.

Every read goes through the cache first. Creating a shipment is the only
operation that costs a credit, so it is guarded by a cache lookup and
falls back to fetching the existing entry when the API reports a conflict.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from shipscli.core.exceptions import ConflictResolutionError, FatalApiError, ShipsGoError
from shipscli.core.services.best_match import select_best_match
from shipscli.domain.events.api_events import CreditConsumed
from shipscli.domain.interfaces.api_transport import ApiResponse, ApiTransport
from shipscli.domain.interfaces.cache import CacheService
from shipscli.domain.models.common import CacheKey, ReferenceKind, create_cache_key
from shipscli.domain.models.rate_limit import RateLimitStatus
from shipscli.domain.models.shipment import (
    CreateResult,
    ListOptions,
    Milestone,
    SharingLinkResult,
    Shipment,
    ShipmentCreateRequest,
    ShipmentList,
    ShipmentStatus,
    VesselPosition,
)
from shipscli.infrastructure.mapping.response_mapper import extract_shipments, map_to_shipment
from shipscli.infrastructure.resilience.api_retry import ApiRetryService, dispatch_event
from shipscli.infrastructure.resilience.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)

SHIPMENTS_PATH = "/ocean/shipments"
SHARING_LINK_TEMPLATE = "https://map.shipsgo.com/ocean/shipments/{id}?token={token}"

# --- TTLs (seconds) ---
MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

STATUS_TTLS = {
    ShipmentStatus.PENDING: 2 * HOUR,
    ShipmentStatus.EN_ROUTE: 2 * HOUR,
    ShipmentStatus.ARRIVED: 4 * HOUR,
    ShipmentStatus.DELIVERED: DAY,
    ShipmentStatus.DISCARDED: DAY,
}
DEFAULT_SHIPMENT_TTL = 2 * HOUR
LIST_TTL = 15 * MINUTE
SEARCH_TTL = 15 * MINUTE
ACTIVE_TTL = 15 * MINUTE
ARRIVING_TTL = 30 * MINUTE
POSITION_TTL = 30 * MINUTE
SHARING_LINK_TTL = DAY

AGGREGATE_LIMIT = 100


def shipment_ttl(shipment: Optional[Shipment]) -> int:
    """Cache lifetime for a shipment; stable states live longer.

    A missing shipment (None) gets 0, i.e. the lookup is not cached.
    """
    if shipment is None:
        return 0
    return STATUS_TTLS.get(shipment.status, DEFAULT_SHIPMENT_TTL)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ShipmentTrackingService:
    """Implements shipment creation, lookup and monitoring queries."""

    def __init__(
        self,
        transport: ApiTransport,
        cache_service: CacheService,
        api_retry_service: ApiRetryService,
        rate_tracker: RateLimitTracker,
        today: Callable[[], date] = _utc_today,
    ):
        """Initializes the ShipmentTrackingService.

        Args:
            transport: Sends requests to the ShipsGo API.
            cache_service: Cache for shipments and listings.
            api_retry_service: Retries transient API failures.
            rate_tracker: Reports the remaining API budget.
            today: Returns the current date (UTC) for ETA windows.
        """
        self.transport = transport
        self.cache_service = cache_service
        self.api_retry_service = api_retry_service
        self.rate_tracker = rate_tracker
        self._today = today
        self.cache_disabled = False

    # --- Helpers ---

    async def _call(self, endpoint_name: str, method: str, path: str,
                    body: Optional[Dict[str, Any]] = None,
                    params: Optional[Dict[str, Any]] = None,
                    allowed_statuses: Tuple[int, ...] = ()) -> ApiResponse:
        """One logical API call with retries.

        Non-2xx statuses outside `allowed_statuses` raise FatalApiError, which
        the retry service retries for 5xx and gives up on for 4xx.
        """
        async def attempt() -> ApiResponse:
            response = await self.transport.request(method, path, body=body, params=params)
            if not response.ok and response.status not in allowed_statuses:
                raise FatalApiError(response.status, response.data)
            return response

        return await self.api_retry_service.execute_with_retry(attempt, endpoint_name=endpoint_name)

    def _reference_key(self, kind: ReferenceKind, number: str) -> CacheKey:
        return create_cache_key(kind.cache_prefix, **{kind.value: number.strip().upper()})

    def _create_key(self, request: ShipmentCreateRequest) -> Tuple[ReferenceKind, str, CacheKey]:
        """Cache key of the first reference present (BL, container, booking)."""
        for kind, number in (
            (ReferenceKind.BL, request.bl_number),
            (ReferenceKind.CONTAINER, request.container_number),
            (ReferenceKind.BOOKING, request.booking_number),
        ):
            if number:
                return kind, number, self._reference_key(kind, number)
        raise ValueError("At least one of bl_number, container_number or booking_number is required.")

    # --- Cache control ---

    def disable_cache(self) -> None:
        """Disables caching for all subsequent requests."""
        self.cache_disabled = True
        self.cache_service.disable()

    def enable_cache(self) -> None:
        self.cache_disabled = False
        self.cache_service.enable()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache_service.stats()

    async def clear_cache(self) -> int:
        return await self.cache_service.clear()

    async def invalidate_shipment(self, shipment_id: str) -> bool:
        """Drops the cached shipment and sharing link. True if either existed."""
        shipment_removed = await self.cache_service.invalidate(create_cache_key("shipment:id", id=shipment_id))
        link_removed = await self.cache_service.invalidate(create_cache_key("sharing-link", id=shipment_id))
        return shipment_removed or link_removed

    # --- Rate limits ---

    def get_rate_limit_status(self) -> RateLimitStatus:
        return self.rate_tracker.status()

    # --- Shipment management ---

    async def create_shipment(self, request: ShipmentCreateRequest,
                              custom_reference: Optional[str] = None) -> CreateResult:
        """Creates or retrieves a shipment, spending a credit only when needed.

        1. A cached, non-discarded shipment for the reference is returned as is.
        2. POST creates a new tracking entry (1 credit).
        3. A 409 means the shipment already exists; it is fetched for free.

        The custom reference is applied with a separate PATCH after creation.
        A failing PATCH is reported in `warnings`; the shipment is still tracked.

        Raises:
            InsufficientCreditsError: The account has no credits left.
            RateLimitError: Still rate limited after retries.
            ConflictResolutionError: 409 but the existing shipment is not found.
            FatalApiError: Any other non-2xx response.
        """
        kind, number, cache_key = self._create_key(request)

        if not self.cache_disabled:
            cached = await self.cache_service.get(cache_key)
            if cached.hit and cached.value is not None and not cached.value.is_discarded:
                logger.info(f"Shipment for {kind.value} {number} served from cache (no credit used).")
                return CreateResult(shipment=cached.value, source="cache", credit_used=False)

        response = await self._call(
            "create_shipment", "POST", SHIPMENTS_PATH,
            body=request.to_body(), allowed_statuses=(409,),
        )

        if response.status == 409:
            logger.info(f"Shipment for {kind.value} {number} already exists; fetching existing entry.")
            existing = await self._track_by_reference(kind, number, bypass_cache=True)
            if existing is None:
                raise ConflictResolutionError(
                    f"API reported an existing shipment for {kind.value} {number} (409) but it could not be found."
                )
            await self.cache_service.set(cache_key, existing, ttl=shipment_ttl(existing))
            return CreateResult(shipment=existing, source="existing", credit_used=False)

        shipment = map_to_shipment(response.data)
        dispatch_event(CreditConsumed(shipment_id=shipment.id, reference=number))
        logger.info(f"Created shipment {shipment.id} for {kind.value} {number} (1 credit used).")

        warnings: List[str] = []
        if custom_reference and shipment.id:
            warning = await self._apply_reference(shipment.id, custom_reference)
            if warning:
                warnings.append(warning)

        await self.cache_service.set(cache_key, shipment, ttl=shipment_ttl(shipment))
        return CreateResult(shipment=shipment, source="created", credit_used=True, warnings=warnings)

    async def _apply_reference(self, shipment_id: str, reference: str) -> Optional[str]:
        """PATCHes the custom reference. Returns a warning instead of raising."""
        try:
            response = await self.transport.request(
                "PATCH", f"{SHIPMENTS_PATH}/{shipment_id}", body={"reference": reference}
            )
        except Exception as e:
            # The shipment already exists and the credit is spent
            logger.warning(f"Reference update for shipment {shipment_id} failed: {e}", exc_info=True)
            return f"Reference update failed: {e}"
        if not response.ok:
            logger.warning(f"Reference update for shipment {shipment_id} returned {response.status}")
            return f"Reference update failed ({response.status}). Shipment created but reference not set."
        return None

    async def get_shipment_by_id(self, shipment_id: str) -> Shipment:
        """Gets a shipment by its ShipsGo ID. Cached by status."""
        async def fetch() -> Shipment:
            response = await self._call("get_shipment", "GET", f"{SHIPMENTS_PATH}/{shipment_id}")
            return map_to_shipment(response.data)

        return await self.cache_service.get_or_fetch(
            create_cache_key("shipment:id", id=shipment_id), fetch,
            ttl=shipment_ttl, bypass_cache=self.cache_disabled,
        )

    async def refresh_shipment(self, shipment_id: str) -> Shipment:
        """Forces a re-poll of a shipment, bypassing the cache."""
        await self.invalidate_shipment(shipment_id)
        self.disable_cache()
        return await self.get_shipment_by_id(shipment_id)

    async def list_shipments(self, options: Optional[ListOptions] = None) -> ShipmentList:
        """Lists shipments with optional filters. 404 yields an empty list."""
        options = options or ListOptions()
        params = options.to_params()

        async def fetch() -> ShipmentList:
            response = await self._call("list_shipments", "GET", SHIPMENTS_PATH,
                                        params=params or None, allowed_statuses=(404,))
            if response.status == 404:
                return ShipmentList(shipments=[], count=0)
            raw_shipments = extract_shipments(response.data)
            count = response.data.get("count") if isinstance(response.data, dict) else None
            return ShipmentList(
                shipments=[map_to_shipment(s) for s in raw_shipments],
                count=count if isinstance(count, int) else len(raw_shipments),
            )

        return await self.cache_service.get_or_fetch(
            create_cache_key("list:shipments", **params), fetch,
            ttl=LIST_TTL, bypass_cache=self.cache_disabled,
        )

    # --- Tracking queries ---

    async def _track_by_reference(self, kind: ReferenceKind, number: str,
                                  bypass_cache: bool = False) -> Optional[Shipment]:
        normalized = number.strip().upper()

        async def fetch() -> Optional[Shipment]:
            response = await self._call(f"track_by_{kind.value}", "GET", SHIPMENTS_PATH,
                                        params={kind.query_param: normalized}, allowed_statuses=(404,))
            if response.status == 404:
                return None
            candidates = [map_to_shipment(s) for s in extract_shipments(response.data)]
            if len(candidates) > 1:
                logger.debug(f"{len(candidates)} shipments match {kind.value} {normalized}; selecting best match.")
            return select_best_match(candidates)

        return await self.cache_service.get_or_fetch(
            self._reference_key(kind, normalized), fetch,
            ttl=shipment_ttl, bypass_cache=bypass_cache or self.cache_disabled,
        )

    async def track_by_bl(self, bl_number: str) -> Optional[Shipment]:
        """Tracks a shipment by Bill of Lading number (case-insensitive)."""
        return await self._track_by_reference(ReferenceKind.BL, bl_number)

    async def track_by_container(self, container_number: str) -> Optional[Shipment]:
        """Tracks a shipment by ISO 6346 container number (case-insensitive)."""
        return await self._track_by_reference(ReferenceKind.CONTAINER, container_number)

    async def track_by_booking(self, booking_number: str) -> Optional[Shipment]:
        """Tracks a shipment by carrier booking number (case-insensitive)."""
        return await self._track_by_reference(ReferenceKind.BOOKING, booking_number)

    async def search_by_reference(self, reference: str) -> List[Shipment]:
        """Searches shipments by any reference (BL, container, booking or custom)."""
        async def fetch() -> List[Shipment]:
            response = await self._call("search", "GET", SHIPMENTS_PATH,
                                        params={"reference": reference}, allowed_statuses=(404,))
            if response.status == 404:
                return []
            return [map_to_shipment(s) for s in extract_shipments(response.data)]

        return await self.cache_service.get_or_fetch(
            create_cache_key("search", ref=reference), fetch,
            ttl=SEARCH_TTL, bypass_cache=self.cache_disabled,
        )

    # --- Status & monitoring ---

    async def get_active_shipments(self) -> List[Shipment]:
        """All EN_ROUTE and PENDING shipments (EN_ROUTE first)."""
        async def fetch() -> List[Shipment]:
            en_route, pending = await asyncio.gather(
                self.list_shipments(ListOptions(status=ShipmentStatus.EN_ROUTE.value, limit=AGGREGATE_LIMIT)),
                self.list_shipments(ListOptions(status=ShipmentStatus.PENDING.value, limit=AGGREGATE_LIMIT)),
            )
            return en_route.shipments + pending.shipments

        return await self.cache_service.get_or_fetch(
            create_cache_key("list:active"), fetch,
            ttl=ACTIVE_TTL, bypass_cache=self.cache_disabled,
        )

    async def get_arriving_soon(self, days: int = 7) -> List[Shipment]:
        """EN_ROUTE shipments with an ETA between today and today + `days`."""
        async def fetch() -> List[Shipment]:
            today = self._today()
            result = await self.list_shipments(ListOptions(
                status=ShipmentStatus.EN_ROUTE.value,
                eta_from=today.isoformat(),
                eta_to=(today + timedelta(days=days)).isoformat(),
                limit=AGGREGATE_LIMIT,
            ))
            return result.shipments

        return await self.cache_service.get_or_fetch(
            create_cache_key("list:arriving", days=days), fetch,
            ttl=ARRIVING_TTL, bypass_cache=self.cache_disabled,
        )

    async def get_milestones(self, shipment_id: str) -> List[Milestone]:
        shipment = await self.get_shipment_by_id(shipment_id)
        return shipment.milestones or []

    async def get_vessel_position(self, shipment_id: str) -> Optional[VesselPosition]:
        """Live vessel coordinates, or None when the API has no position."""
        async def fetch() -> Optional[VesselPosition]:
            response = await self._call("vessel_position", "GET", f"{SHIPMENTS_PATH}/{shipment_id}",
                                        params={"mapPoint": "true"}, allowed_statuses=(404,))
            if response.status == 404:
                return None
            shipment = map_to_shipment(response.data)
            if shipment.coordinates is None:
                return None
            return VesselPosition(
                lat=shipment.coordinates.lat,
                lng=shipment.coordinates.lng,
                vessel=shipment.vessel.name if shipment.vessel and shipment.vessel.name else "Unknown",
            )

        return await self.cache_service.get_or_fetch(
            create_cache_key("position", id=shipment_id), fetch,
            ttl=POSITION_TTL, bypass_cache=self.cache_disabled,
        )

    # --- Utilities ---

    async def get_api_status(self) -> Dict[str, Any]:
        """Checks API connectivity and key validity. Never raises."""
        try:
            response = await self.transport.request("GET", SHIPMENTS_PATH, params={"limit": 1})
        except ShipsGoError as e:
            return {"valid": False, "message": str(e)}

        if response.ok:
            return {
                "valid": True,
                "message": "API key is valid and connection successful",
                "details": {"rate_limit": self.get_rate_limit_status().to_dict()},
            }
        return {"valid": False, "message": f"API returned status {response.status}"}

    async def get_sharing_link(self, shipment_id: str) -> Optional[SharingLinkResult]:
        """Public tracking link for a shipment, or None if no map token yet.

        Only positive results are cached; the token may be assigned later.
        """
        cache_key = create_cache_key("sharing-link", id=shipment_id)
        if not self.cache_disabled:
            cached = await self.cache_service.get(cache_key)
            if cached.hit and cached.value is not None:
                return cached.value

        # The map token is not part of the Shipment model, so read the raw payload
        response = await self._call("sharing_link", "GET", f"{SHIPMENTS_PATH}/{shipment_id}",
                                    allowed_statuses=(404,))
        if response.status == 404:
            return None

        data = response.data if isinstance(response.data, dict) else {}
        shipment_data = data.get("shipment") if isinstance(data.get("shipment"), dict) else data
        tokens = shipment_data.get("tokens") if isinstance(shipment_data.get("tokens"), dict) else {}
        map_token = tokens.get("map")
        if not map_token:
            logger.info(f"No map token assigned yet for shipment {shipment_id}.")
            return None

        route = shipment_data.get("route") if isinstance(shipment_data.get("route"), dict) else {}
        pol = route.get("port_of_loading") if isinstance(route.get("port_of_loading"), dict) else {}
        pod = route.get("port_of_discharge") if isinstance(route.get("port_of_discharge"), dict) else {}

        result = SharingLinkResult(
            url=SHARING_LINK_TEMPLATE.format(id=shipment_id, token=map_token),
            shipment_id=shipment_id,
            container_number=shipment_data.get("container_number"),
            status=shipment_data.get("status") or "UNKNOWN",
            pol=(pol.get("location") or {}).get("name") if isinstance(pol.get("location"), dict) else None,
            pod=(pod.get("location") or {}).get("name") if isinstance(pod.get("location"), dict) else None,
            eta=pod.get("date_of_discharge"),
        )
        await self.cache_service.set(cache_key, result, ttl=SHARING_LINK_TTL)
        return result

    async def aclose(self) -> None:
        await self.transport.aclose()
