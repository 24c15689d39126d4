from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Tuple

from geocoding import DistanceResolutionError, GeocodingClient, RouteDistance, extract_zip
from pricing_rules import round_money
from selection_state import DistanceResult
from widget_config import DistanceRate

logger = logging.getLogger(__name__)

AddressPair = Tuple[str, str]


class DistanceStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


def billable_distance_cost(miles: float, cost_per_mile: float, minimum_distance: float) -> float:
    """
    Cost of a trip: the travelled miles (never less than the minimum billable
    distance) times the per-mile rate, rounded to cents.
    """
    billable_miles = max(float(miles), float(minimum_distance))
    return round_money(billable_miles * float(cost_per_mile))


def _normalize_pair(origin: str, destination: str) -> AddressPair:
    return (origin or "").strip(), (destination or "").strip()


class DistanceCostResolver:
    """
    Resolves the travelled distance between two addresses and prices it.

    - Results are memoized by the exact address pair of the last success.
    - A call for the pair that is already in flight waits on that request instead
      of issuing another one.
    - A call for a different pair supersedes the one in flight: the older request is
      left to finish but its outcome is discarded.
    - Failures never propagate; they set `status` to ERROR and `error` to a message.
      Calling `resolve` again retries.
    """

    def __init__(self, geocoder: GeocodingClient, rate: DistanceRate) -> None:
        self._geocoder = geocoder
        self.rate = rate
        self.status = DistanceStatus.IDLE
        self.error: Optional[str] = None
        self.result: Optional[DistanceResult] = None
        self.network_calls = 0
        self._last_resolved: Optional[AddressPair] = None
        self._latest_requested: Optional[AddressPair] = None
        self._inflight_pair: Optional[AddressPair] = None
        self._inflight_task: Optional[asyncio.Future[RouteDistance]] = None

    @property
    def last_resolved_pair(self) -> Optional[AddressPair]:
        return self._last_resolved

    def should_resolve(self, origin: str, destination: str) -> bool:
        """
        Whether auto-resolution should fire for these inputs: both present and not
        already the last resolved (or currently requested) pair.
        """
        pair = _normalize_pair(origin, destination)
        if not pair[0] or not pair[1]:
            return False
        if pair == self._last_resolved and self.result is not None:
            return False
        if pair == self._inflight_pair and self._inflight_task is not None and not self._inflight_task.done():
            return False
        return True

    async def resolve(self, origin: str, destination: str) -> Optional[DistanceResult]:
        """
        Resolve and price the pair. Returns the committed result, or None when the
        request failed or was superseded.
        """
        pair = _normalize_pair(origin, destination)
        if not pair[0] or not pair[1]:
            self.status = DistanceStatus.ERROR
            self.error = "Enter both a starting address and a destination address."
            return None
        self._latest_requested = pair
        if pair == self._last_resolved and self.result is not None:
            self.status = DistanceStatus.SUCCESS
            self.error = None
            return self.result

        task = self._inflight_task
        if pair != self._inflight_pair or task is None or task.done():
            self.network_calls += 1
            logger.info("Resolving distance %r -> %r", pair[0], pair[1])
            task = asyncio.ensure_future(self._geocoder.geocode_distance(pair[0], pair[1]))
            self._inflight_pair = pair
            self._inflight_task = task
        self.status = DistanceStatus.LOADING
        self.error = None

        try:
            route = await task
        except Exception as exc:  # any geocoder failure ends up in status/error
            if self._inflight_task is task:
                self._inflight_task = None
                self._inflight_pair = None
            if self._latest_requested != pair:
                logger.info("Discarding failed distance resolution for superseded pair %r", pair)
                return None
            message = str(exc) if isinstance(exc, DistanceResolutionError) and str(exc) else ""
            self.status = DistanceStatus.ERROR
            self.error = message or "Unable to calculate distance right now."
            logger.warning("Distance resolution failed for %r -> %r: %s", pair[0], pair[1], exc)
            return None

        if self._inflight_task is task:
            self._inflight_task = None
            self._inflight_pair = None
        if self._latest_requested != pair:
            logger.info("Discarding distance result for superseded pair %r", pair)
            return None

        result = self._price_route(pair, route)
        self.result = result
        self._last_resolved = pair
        self.status = DistanceStatus.SUCCESS
        self.error = None
        logger.info("Resolved %.1f miles, estimated cost %.2f", result.miles, result.estimated_cost)
        return result

    def _price_route(self, pair: AddressPair, route: RouteDistance) -> DistanceResult:
        origin = route.origin.formatted_address or pair[0]
        destination = route.destination.formatted_address or pair[1]
        return DistanceResult(
            origin=origin,
            destination=destination,
            miles=float(route.miles),
            estimated_cost=billable_distance_cost(route.miles, self.rate.cost_per_mile, self.rate.minimum_distance),
            cost_per_mile=self.rate.cost_per_mile,
            origin_postal_code=route.origin.postal_code or extract_zip(origin) or extract_zip(pair[0]),
            destination_postal_code=route.destination.postal_code or extract_zip(destination) or extract_zip(pair[1]),
        )

    def reset(self) -> None:
        self.status = DistanceStatus.IDLE
        self.error = None
        self.result = None
        self._last_resolved = None
        self._latest_requested = None
