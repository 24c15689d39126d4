from __future__ import annotations

import unittest

from module_configs import build_widget_configuration, build_widget_document, humanize_module_key
from widget_config import BasePrice, DistanceRate, FixedPrice, PerUnitPrice


class TestBuildWidgetDocument(unittest.TestCase):
    def setUp(self) -> None:
        self.module_configs = {
            "service-selection": {"options": [{"title": "Full Service Moving", "price_multiplier": 1.0}]},
            "project-scope": {
                "title": "What size is your move?",
                "options": [{"title": "Studio", "base_price": 350, "price_range_min": 298, "price_range_max": 508}],
            },
            "origin-challenges": {
                "options": [
                    {"title": "Stairs (flights)", "pricing_type": "per_unit", "pricing_value": 45, "max_units": 10},
                    {"title": "Narrow doorways", "pricing_value": 85},
                ]
            },
            "distance-calculation": {"title": "Route Calculation"},
            "contact-info": {"title": "Contact"},
        }
        self.enabled = ["service-selection", "project-scope", "origin-challenges", "distance-calculation", "contact-info"]

    def test_steps_follow_enabled_modules(self) -> None:
        doc = build_widget_document(
            widget_key="wgt_x",
            enabled_modules=["review-quote", *self.enabled],
            module_configs=self.module_configs,
        )
        # Modules without a config are skipped.
        self.assertEqual(doc["step_order"], self.enabled)
        self.assertEqual(doc["widget_id"], "wgt_x")

    def test_step_shape(self) -> None:
        doc = build_widget_document(widget_key="wgt_x", enabled_modules=self.enabled, module_configs=self.module_configs)
        steps = doc["steps_data"]
        self.assertEqual(steps["service-selection"]["title"], "Service Selection")
        self.assertEqual(steps["service-selection"]["prompt"], {"message": "Service Selection", "type": "avatar"})
        self.assertTrue(steps["service-selection"]["validation"]["required"])
        self.assertFalse(steps["project-scope"]["validation"]["required"])
        self.assertEqual(steps["contact-info"]["buttons"]["primary"]["action"], "submit")
        self.assertEqual(steps["distance-calculation"]["layout"]["type"], "route-calculation")
        self.assertEqual(steps["project-scope"]["options"][0]["id"], "project-scope_option_0")
        self.assertEqual(steps["project-scope"]["options"][0]["value"], "Studio")

    def test_estimation_per_module(self) -> None:
        config = build_widget_configuration(
            widget_key="wgt_x", enabled_modules=self.enabled, module_configs=self.module_configs
        )
        scope = config.steps["project-scope"].options[0].estimation
        self.assertEqual(scope, BasePrice(base_price=350, estimated_hours=0, price_range_min=298, price_range_max=508))
        self.assertIsNone(config.steps["service-selection"].options[0].estimation)
        stairs, narrow = config.steps["origin-challenges"].options
        self.assertEqual(stairs.estimation, PerUnitPrice(pricing_value=45, max_units=10))
        self.assertEqual(narrow.estimation, FixedPrice(pricing_value=85))

    def test_distance_settings_default_rate(self) -> None:
        config = build_widget_configuration(
            widget_key="wgt_x", enabled_modules=self.enabled, module_configs=self.module_configs
        )
        self.assertEqual(config.distance_rate(), DistanceRate(cost_per_mile=4.0, minimum_distance=0.0))
        self.assertEqual(config.steps["distance-calculation"].options[0].id, "distance_settings")

    def test_settings_defaults(self) -> None:
        doc = build_widget_document(widget_key="wgt_x", enabled_modules=self.enabled, module_configs=self.module_configs)
        self.assertEqual(
            doc["estimation_settings"],
            {
                "tax_rate": 0.08,
                "service_area_miles": 100,
                "minimum_job_price": 0.0,
                "show_price_ranges": True,
                "currency": "USD",
                "currency_symbol": "$",
            },
        )

    def test_explicit_steps_win(self) -> None:
        doc = build_widget_document(
            widget_key="wgt_x",
            enabled_modules=self.enabled,
            module_configs=self.module_configs,
            steps=[
                {"step_key": "size", "title": "Size", "options": [{"id": "s", "estimation": {"base_price": 99}}]},
                {"title": "no key"},
            ],
        )
        self.assertEqual(doc["step_order"], ["size"])
        self.assertEqual(doc["steps_data"]["size"]["title"], "Size")

    def test_humanize_module_key(self) -> None:
        self.assertEqual(humanize_module_key("origin-challenges"), "Origin Challenges")


if __name__ == "__main__":
    unittest.main()
