from __future__ import annotations

import unittest

from pricing_rules import LineKind, evaluate, match_option, resolve_answer
from widget_config import (
    BasePrice,
    DiscountPrice,
    DistanceRate,
    FixedPrice,
    OptionDefinition,
    PercentagePrice,
    PerUnitPrice,
    StepDefinition,
)


def _opt(estimation, *, title="Option", opt_id="opt", value="opt"):
    return OptionDefinition(id=opt_id, value=value, title=title, estimation=estimation)


class TestEvaluate(unittest.TestCase):
    def test_per_unit_caps_at_max_units(self) -> None:
        line = evaluate(_opt(PerUnitPrice(pricing_value=45, max_units=10)), 0.0, units=15)
        self.assertEqual(line.amount, 450.0)
        self.assertEqual(line.units, 10)
        self.assertEqual(line.kind, LineKind.PER_UNIT)

    def test_per_unit_non_positive_units_cost_nothing(self) -> None:
        opt = _opt(PerUnitPrice(pricing_value=45, max_units=10))
        self.assertEqual(evaluate(opt, 0.0, units=0).amount, 0.0)
        self.assertEqual(evaluate(opt, 0.0, units=-3).amount, 0.0)
        self.assertEqual(evaluate(opt, 0.0).amount, 45.0)

    def test_percentage_uses_running_subtotal(self) -> None:
        self.assertEqual(evaluate(_opt(PercentagePrice(0.15)), 200.0).amount, 30.0)
        self.assertEqual(evaluate(_opt(PercentagePrice(0.15)), 0.0).amount, 0.0)

    def test_discount_always_subtracts(self) -> None:
        self.assertEqual(evaluate(_opt(DiscountPrice(-0.05)), 200.0).amount, -10.0)
        self.assertEqual(evaluate(_opt(DiscountPrice(0.05)), 200.0).amount, -10.0)
        self.assertEqual(evaluate(_opt(DiscountPrice(-0.05)), 0.0).amount, 0.0)

    def test_fixed_and_base_price(self) -> None:
        self.assertEqual(evaluate(_opt(FixedPrice(85)), 1000.0).amount, 85.0)
        line = evaluate(_opt(BasePrice(base_price=350, estimated_hours=3)), 0.0)
        self.assertEqual(line.amount, 350.0)
        self.assertEqual(line.kind, LineKind.BASE_PRICE)

    def test_unpriced_options(self) -> None:
        self.assertIsNone(evaluate(None, 100.0))
        self.assertIsNone(evaluate(_opt(None), 100.0))
        self.assertIsNone(evaluate(_opt(DistanceRate(cost_per_mile=4.0)), 100.0))

    def test_amounts_are_rounded_to_cents(self) -> None:
        self.assertEqual(evaluate(_opt(PercentagePrice(0.12)), 333.33).amount, 40.0)
        self.assertEqual(evaluate(_opt(PercentagePrice(1 / 3)), 100.0).amount, 33.33)

    def test_label_falls_back_to_step_title(self) -> None:
        opt = OptionDefinition(id="x", value="x", title="", estimation=FixedPrice(10))
        self.assertEqual(evaluate(opt, 0.0, fallback_label="Extras").label, "Extras")


class TestResolveAnswer(unittest.TestCase):
    def setUp(self) -> None:
        self.stairs = OptionDefinition(
            id="challenge_option_0",
            value="Stairs (flights)",
            title="Stairs (flights)",
            estimation=PerUnitPrice(pricing_value=45, max_units=10),
        )
        self.narrow = OptionDefinition(
            id="challenge_option_1", value="Narrow doorways", title="Narrow doorways", estimation=FixedPrice(85)
        )
        self.step = StepDefinition(key="challenge", title="Challenges", options=(self.narrow, self.stairs))

    def test_matches_by_id_or_value(self) -> None:
        self.assertIs(match_option(self.step, "challenge_option_1"), self.narrow)
        self.assertIs(match_option(self.step, "Narrow doorways"), self.narrow)
        self.assertIsNone(match_option(self.step, "Piano"))

    def test_numeric_answer_is_a_quantity_for_the_per_unit_option(self) -> None:
        self.assertEqual(resolve_answer(self.step, "8"), (self.stairs, 8))
        self.assertEqual(resolve_answer(self.step, 3), (self.stairs, 3))

    def test_explicit_option_and_units(self) -> None:
        self.assertEqual(resolve_answer(self.step, {"option": "Stairs (flights)", "units": 4}), (self.stairs, 4))
        self.assertEqual(resolve_answer(self.step, {"option": "Narrow doorways"}), (self.narrow, 1))

    def test_unmatched_answer(self) -> None:
        self.assertEqual(resolve_answer(self.step, "Piano"), (None, 1))


if __name__ == "__main__":
    unittest.main()
