from __future__ import annotations

import asyncio
import unittest
from typing import Dict, Optional, Tuple

from distance_resolver import DistanceCostResolver, DistanceStatus, billable_distance_cost
from geocoding import DistanceResolutionError, GeocodedPlace, RouteDistance
from widget_config import DistanceRate


class _FakeGeocoder:
    """
    Scripted geocoder: per-pair miles, optional gates to hold a request open, and
    optional errors.
    """

    def __init__(self, miles: Optional[Dict[Tuple[str, str], float]] = None) -> None:
        self.miles = miles or {}
        self.gates: Dict[Tuple[str, str], asyncio.Event] = {}
        self.errors: Dict[Tuple[str, str], Exception] = {}
        self.calls: list[Tuple[str, str]] = []

    async def geocode_distance(self, origin: str, destination: str) -> RouteDistance:
        pair = (origin, destination)
        self.calls.append(pair)
        gate = self.gates.get(pair)
        if gate is not None:
            await gate.wait()
        if pair in self.errors:
            raise self.errors[pair]
        return RouteDistance(
            origin=GeocodedPlace(lat=0.0, lng=0.0, formatted_address=origin, postal_code="30303"),
            destination=GeocodedPlace(lat=0.0, lng=0.0, formatted_address=destination),
            miles=self.miles.get(pair, 10.0),
        )


class TestBillableDistanceCost(unittest.TestCase):
    def test_cost(self) -> None:
        self.assertEqual(billable_distance_cost(12.34, 4.0, 0), 49.36)
        self.assertEqual(billable_distance_cost(2.0, 4.0, 5.0), 20.0)
        self.assertEqual(billable_distance_cost(0.0, 4.0, 0.0), 0.0)


class TestDistanceCostResolver(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.geocoder = _FakeGeocoder({("A", "X"): 12.34, ("B", "Y"): 25.0})
        self.resolver = DistanceCostResolver(self.geocoder, DistanceRate(cost_per_mile=4.0))

    async def test_success_sets_status_and_prices_route(self) -> None:
        self.assertEqual(self.resolver.status, DistanceStatus.IDLE)
        result = await self.resolver.resolve("  A ", "X")
        self.assertEqual(self.resolver.status, DistanceStatus.SUCCESS)
        self.assertIsNone(self.resolver.error)
        self.assertEqual(result.miles, 12.34)
        self.assertEqual(result.estimated_cost, 49.36)
        self.assertEqual(result.origin_postal_code, "30303")
        self.assertEqual(self.resolver.last_resolved_pair, ("A", "X"))

    async def test_same_pair_is_memoized(self) -> None:
        first = await self.resolver.resolve("A", "X")
        second = await self.resolver.resolve("A", "X")
        self.assertIs(first, second)
        self.assertEqual(self.resolver.network_calls, 1)
        self.assertFalse(self.resolver.should_resolve("A", "X"))
        self.assertTrue(self.resolver.should_resolve("B", "Y"))
        self.assertFalse(self.resolver.should_resolve("B", ""))

    async def test_concurrent_calls_for_one_pair_share_a_request(self) -> None:
        gate = asyncio.Event()
        self.geocoder.gates[("A", "X")] = gate
        t1 = asyncio.create_task(self.resolver.resolve("A", "X"))
        t2 = asyncio.create_task(self.resolver.resolve("A", "X"))
        await asyncio.sleep(0)
        self.assertEqual(self.resolver.status, DistanceStatus.LOADING)
        self.assertFalse(self.resolver.should_resolve("A", "X"))
        gate.set()
        r1, r2 = await asyncio.gather(t1, t2)
        self.assertEqual(r1, r2)
        self.assertEqual(self.resolver.network_calls, 1)
        self.assertEqual(len(self.geocoder.calls), 1)

    async def test_older_result_arriving_late_is_discarded(self) -> None:
        gate_a = asyncio.Event()
        gate_b = asyncio.Event()
        self.geocoder.gates[("A", "X")] = gate_a
        self.geocoder.gates[("B", "Y")] = gate_b

        task_a = asyncio.create_task(self.resolver.resolve("A", "X"))
        await asyncio.sleep(0)
        task_b = asyncio.create_task(self.resolver.resolve("B", "Y"))
        await asyncio.sleep(0)

        gate_b.set()
        result_b = await task_b
        self.assertEqual(result_b.origin, "B")

        gate_a.set()
        self.assertIsNone(await task_a)
        self.assertEqual(self.resolver.result.origin, "B")
        self.assertEqual(self.resolver.last_resolved_pair, ("B", "Y"))
        self.assertEqual(self.resolver.status, DistanceStatus.SUCCESS)

    async def test_older_result_arriving_first_is_discarded(self) -> None:
        gate_a = asyncio.Event()
        gate_b = asyncio.Event()
        self.geocoder.gates[("A", "X")] = gate_a
        self.geocoder.gates[("B", "Y")] = gate_b

        task_a = asyncio.create_task(self.resolver.resolve("A", "X"))
        await asyncio.sleep(0)
        task_b = asyncio.create_task(self.resolver.resolve("B", "Y"))
        await asyncio.sleep(0)

        gate_a.set()
        self.assertIsNone(await task_a)
        self.assertIsNone(self.resolver.result)
        self.assertEqual(self.resolver.status, DistanceStatus.LOADING)

        gate_b.set()
        await task_b
        self.assertEqual(self.resolver.result.miles, 25.0)

    async def test_memo_hit_supersedes_request_in_flight(self) -> None:
        await self.resolver.resolve("A", "X")
        gate_b = asyncio.Event()
        self.geocoder.gates[("B", "Y")] = gate_b
        task_b = asyncio.create_task(self.resolver.resolve("B", "Y"))
        await asyncio.sleep(0)

        back = await self.resolver.resolve("A", "X")
        self.assertEqual(back.origin, "A")
        gate_b.set()
        self.assertIsNone(await task_b)
        self.assertEqual(self.resolver.result.origin, "A")

    async def test_geocoding_error_is_reported_then_retried(self) -> None:
        self.geocoder.errors[("A", "X")] = DistanceResolutionError("No results found for 'A'")
        self.assertIsNone(await self.resolver.resolve("A", "X"))
        self.assertEqual(self.resolver.status, DistanceStatus.ERROR)
        self.assertEqual(self.resolver.error, "No results found for 'A'")

        del self.geocoder.errors[("A", "X")]
        result = await self.resolver.resolve("A", "X")
        self.assertIsNotNone(result)
        self.assertEqual(self.resolver.status, DistanceStatus.SUCCESS)
        self.assertEqual(self.resolver.network_calls, 2)

    async def test_unexpected_error_gets_generic_message(self) -> None:
        self.geocoder.errors[("A", "X")] = KeyError("center")
        self.assertIsNone(await self.resolver.resolve("A", "X"))
        self.assertEqual(self.resolver.error, "Unable to calculate distance right now.")

    async def test_missing_address_never_calls_geocoder(self) -> None:
        self.assertIsNone(await self.resolver.resolve("A", "   "))
        self.assertEqual(self.resolver.status, DistanceStatus.ERROR)
        self.assertEqual(self.geocoder.calls, [])

    async def test_reset(self) -> None:
        await self.resolver.resolve("A", "X")
        self.resolver.reset()
        self.assertEqual(self.resolver.status, DistanceStatus.IDLE)
        self.assertIsNone(self.resolver.result)
        self.assertTrue(self.resolver.should_resolve("A", "X"))


if __name__ == "__main__":
    unittest.main()
