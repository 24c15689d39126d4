from __future__ import annotations

import asyncio
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

MAPBOX_GEOCODE_BASE = "https://api.mapbox.com/geocoding/v5/mapbox.places"
EARTH_RADIUS_MILES = 3958.8

_ZIP_RE = re.compile(r"\b(\d{5})(?:-\d{4})?\b")


class DistanceResolutionError(RuntimeError):
    pass


@dataclass(frozen=True)
class GeocodedPlace:
    lat: float
    lng: float
    formatted_address: str
    postal_code: Optional[str] = None


@dataclass(frozen=True)
class RouteDistance:
    origin: GeocodedPlace
    destination: GeocodedPlace
    miles: float


class GeocodingClient(Protocol):
    async def geocode_distance(self, origin: str, destination: str) -> RouteDistance: ...


def haversine_miles(a_lat: float, a_lng: float, b_lat: float, b_lng: float) -> float:
    """
    Great-circle distance in miles between two lat/lng points.
    """
    to_rad = math.radians
    d_lat = to_rad(b_lat - a_lat)
    d_lng = to_rad(b_lng - a_lng)
    lat1 = to_rad(a_lat)
    lat2 = to_rad(b_lat)
    h = math.sin(d_lat / 2) ** 2 + math.sin(d_lng / 2) ** 2 * math.cos(lat1) * math.cos(lat2)
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def extract_zip(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    m = _ZIP_RE.search(text)
    return m.group(1) if m else None


def _find_postcode(feature: dict[str, Any]) -> Optional[str]:
    for ctx in feature.get("context") or []:
        if isinstance(ctx, dict) and str(ctx.get("id") or "").startswith("postcode"):
            text = ctx.get("text")
            if isinstance(text, str) and text.strip():
                return text.strip()
    if str(feature.get("id") or "").startswith("postcode"):
        text = feature.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    return extract_zip(feature.get("place_name"))


class MapboxGeocoder:
    """
    Forward-geocodes both addresses with Mapbox and measures the straight-line distance.

    Pass an `httpx.AsyncClient` to share a connection pool (or a mocked transport in
    tests); otherwise a client is created per call.
    """

    def __init__(
        self,
        access_token: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: float = 10.0,
        base_url: str = MAPBOX_GEOCODE_BASE,
    ) -> None:
        self.access_token = access_token
        self.timeout_s = timeout_s
        self.base_url = base_url.rstrip("/")
        self._client = client

    @classmethod
    def from_env(cls, *, client: Optional[httpx.AsyncClient] = None) -> "MapboxGeocoder":
        token = str(os.environ.get("MAPBOX_TOKEN") or "").strip()
        if not token:
            raise DistanceResolutionError("Missing Mapbox token. Set MAPBOX_TOKEN in your environment.")
        timeout_raw = str(os.environ.get("GEOCODING_TIMEOUT_S") or "").strip()
        try:
            timeout_s = float(timeout_raw) if timeout_raw else 10.0
        except ValueError:
            timeout_s = 10.0
        return cls(token, client=client, timeout_s=timeout_s)

    async def geocode_address(self, address: str) -> GeocodedPlace:
        if self._client is not None:
            return await self._geocode(self._client, address)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await self._geocode(client, address)

    async def geocode_distance(self, origin: str, destination: str) -> RouteDistance:
        if self._client is not None:
            return await self._geocode_pair(self._client, origin, destination)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await self._geocode_pair(client, origin, destination)

    async def _geocode_pair(self, client: httpx.AsyncClient, origin: str, destination: str) -> RouteDistance:
        o, d = await asyncio.gather(self._geocode(client, origin), self._geocode(client, destination))
        miles = haversine_miles(o.lat, o.lng, d.lat, d.lng)
        return RouteDistance(origin=o, destination=d, miles=miles)

    async def _geocode(self, client: httpx.AsyncClient, address: str) -> GeocodedPlace:
        address = (address or "").strip()
        if not address:
            raise DistanceResolutionError("Address is empty")
        url = f"{self.base_url}/{quote(address, safe='')}.json"
        try:
            resp = await client.get(url, params={"access_token": self.access_token, "limit": 1}, timeout=self.timeout_s)
        except httpx.HTTPError as exc:
            raise DistanceResolutionError(f"Geocoding request failed: {exc}") from exc
        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning("Mapbox geocoding returned HTTP %s for %r", resp.status_code, address)
            raise DistanceResolutionError("Mapbox geocoding request failed")
        try:
            data = resp.json()
        except ValueError as exc:
            raise DistanceResolutionError("Geocoding response was not JSON") from exc

        features = data.get("features") if isinstance(data, dict) else None
        feature = features[0] if isinstance(features, list) and features else None
        center = feature.get("center") if isinstance(feature, dict) else None
        if not isinstance(center, list) or len(center) < 2:
            raise DistanceResolutionError(f"No results found for {address!r}")
        lng, lat = float(center[0]), float(center[1])
        place_name = feature.get("place_name")
        return GeocodedPlace(
            lat=lat,
            lng=lng,
            formatted_address=place_name if isinstance(place_name, str) and place_name else address,
            postal_code=_find_postcode(feature),
        )
