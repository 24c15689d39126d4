from __future__ import annotations

import os
import unittest
from unittest import mock

import httpx

from geocoding import DistanceResolutionError, MapboxGeocoder, extract_zip, haversine_miles

_PLACES = {
    "Atlanta": {
        "center": [-84.388, 33.749],
        "place_name": "Atlanta, Georgia 30303, United States",
        "context": [{"id": "postcode.8814", "text": "30303"}, {"id": "place.123", "text": "Atlanta"}],
    },
    "Decatur": {
        "center": [-84.2963, 33.7748],
        "place_name": "Decatur, Georgia, United States",
        "context": [],
    },
}


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("access_token") != "tok":
        return httpx.Response(401, json={"message": "Not Authorized - Invalid Token"})
    for name, feature in _PLACES.items():
        if name in request.url.path:
            return httpx.Response(200, json={"type": "FeatureCollection", "features": [feature]})
    return httpx.Response(200, json={"type": "FeatureCollection", "features": []})


class TestHelpers(unittest.TestCase):
    def test_haversine(self) -> None:
        self.assertAlmostEqual(haversine_miles(33.749, -84.388, 33.749, -84.388), 0.0)
        # New York to Los Angeles is roughly 2,450 miles as the crow flies.
        self.assertAlmostEqual(haversine_miles(40.7128, -74.0060, 34.0522, -118.2437), 2445.0, delta=15.0)

    def test_extract_zip(self) -> None:
        self.assertEqual(extract_zip("123 Peachtree St, Atlanta, GA 30303-1234"), "30303")
        self.assertIsNone(extract_zip("Atlanta, GA"))
        self.assertIsNone(extract_zip(None))

    def test_from_env_requires_token(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(DistanceResolutionError):
                MapboxGeocoder.from_env()
        with mock.patch.dict(os.environ, {"MAPBOX_TOKEN": "tok", "GEOCODING_TIMEOUT_S": "3.5"}, clear=True):
            geocoder = MapboxGeocoder.from_env()
            self.assertEqual(geocoder.access_token, "tok")
            self.assertEqual(geocoder.timeout_s, 3.5)


class TestMapboxGeocoder(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))

    async def asyncTearDown(self) -> None:
        await self.client.aclose()

    async def test_geocode_distance(self) -> None:
        geocoder = MapboxGeocoder("tok", client=self.client)
        route = await geocoder.geocode_distance("Atlanta", "Decatur")
        self.assertEqual(route.origin.postal_code, "30303")
        self.assertIsNone(route.destination.postal_code)
        self.assertEqual(route.origin.formatted_address, "Atlanta, Georgia 30303, United States")
        self.assertAlmostEqual(route.miles, haversine_miles(33.749, -84.388, 33.7748, -84.2963))
        self.assertGreater(route.miles, 5.0)
        self.assertLess(route.miles, 7.0)

    async def test_no_results(self) -> None:
        geocoder = MapboxGeocoder("tok", client=self.client)
        with self.assertRaises(DistanceResolutionError) as ctx:
            await geocoder.geocode_address("Nowhere Special")
        self.assertIn("No results", str(ctx.exception))

    async def test_http_error_status(self) -> None:
        geocoder = MapboxGeocoder("bad-token", client=self.client)
        with self.assertRaises(DistanceResolutionError):
            await geocoder.geocode_distance("Atlanta", "Decatur")

    async def test_transport_error(self) -> None:
        def _boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(_boom)) as client:
            geocoder = MapboxGeocoder("tok", client=client)
            with self.assertRaises(DistanceResolutionError):
                await geocoder.geocode_address("Atlanta")


if __name__ == "__main__":
    unittest.main()
