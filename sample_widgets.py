from __future__ import annotations

from typing import Any, Dict, List

from module_configs import build_widget_document
from widget_config import WidgetConfiguration, load_widget_configuration

SAMPLE_WIDGET_KEY = "wgt_atlanta_moving_demo"


def _challenge_options() -> List[Dict[str, Any]]:
    return [
        {"title": "Stairs (flights)", "pricing_type": "per_unit", "pricing_value": 45, "max_units": 10},
        {"title": "Elevator available", "pricing_type": "discount", "pricing_value": -0.05},
        {"title": "Narrow doorways", "pricing_type": "fixed", "pricing_value": 85},
        {"title": "Long distance from parking", "pricing_type": "percentage", "pricing_value": 0.15},
        {"title": "Heavy/bulky items", "pricing_type": "percentage", "pricing_value": 0.12},
        {"title": "Fragile items", "pricing_type": "fixed", "pricing_value": 125},
    ]


def sample_moving_widget_document() -> Dict[str, Any]:
    """
    A full moving-company widget in the served document shape.

    Mirrors a real Atlanta mover's setup: sizes priced from a base price, challenge
    surcharges, $4/mile travel and a $200 minimum job price.
    """
    enabled_modules = [
        "service-selection",
        "location-type",
        "project-scope",
        "time-selection",
        "origin-location",
        "origin-challenges",
        "target-location",
        "target-challenges",
        "distance-calculation",
        "additional-services",
        "contact-info",
        "review-quote",
    ]
    module_configs: Dict[str, Dict[str, Any]] = {
        "service-selection": {
            "title": "How can we help?",
            "options": [
                {"title": "Full Service Moving", "description": "Packing, loading, transport", "price_multiplier": 1.0},
                {"title": "Labor Only Services", "description": "Loading and unloading help", "price_multiplier": 0.65},
            ],
        },
        "location-type": {
            "title": "What type of location?",
            "subtitle": "Select the type of location you're moving between",
            "options": [
                {"title": "Residential", "price_multiplier": 1.0},
                {"title": "Commercial", "price_multiplier": 1.25},
                {"title": "Storage Unit", "price_multiplier": 0.85},
            ],
        },
        "project-scope": {
            "title": "What size is your move?",
            "subtitle": "Select the size that best describes your move",
            "options": [
                {"title": "Studio", "base_price": 350, "estimated_hours": 3, "price_range_min": 298, "price_range_max": 508},
                {"title": "1 Bedroom", "base_price": 475, "estimated_hours": 4, "price_range_min": 404, "price_range_max": 689},
                {"title": "2 Bedroom", "base_price": 650, "estimated_hours": 5, "price_range_min": 553, "price_range_max": 943},
                {"title": "3 Bedroom", "base_price": 825, "estimated_hours": 6, "price_range_min": 701, "price_range_max": 1196},
                {"title": "4 Bedroom", "base_price": 1050, "estimated_hours": 8, "price_range_min": 893, "price_range_max": 1523},
                {"title": "5+ Bedroom", "base_price": 1300, "estimated_hours": 10, "price_range_min": 1105, "price_range_max": 1885},
            ],
        },
        "time-selection": {
            "title": "What's your preferred start time?",
            "options": [
                {"title": "Morning", "price_multiplier": 1.0},
                {"title": "Afternoon", "price_multiplier": 1.0},
                {"title": "Evening", "price_multiplier": 1.15},
            ],
        },
        "origin-location": {
            "title": "Where are you moving from?",
            "subtitle": "Enter your pickup location so we can provide accurate pricing and logistics",
        },
        "origin-challenges": {"title": "Pickup Location Challenges", "options": _challenge_options()},
        "target-location": {
            "title": "Where are you moving to?",
            "subtitle": "Enter your destination address to complete the route planning",
        },
        "target-challenges": {"title": "Destination Challenges", "options": _challenge_options()},
        "distance-calculation": {
            "title": "Route Calculation",
            "cost_per_mile": 4.00,
            "minimum_distance": 0,
        },
        "additional-services": {
            "title": "Any additional services?",
            "options": [
                {"title": "Packing Services", "pricing_type": "percentage", "pricing_value": 0.25},
                {"title": "Moving Insurance", "pricing_type": "percentage", "pricing_value": 0.08},
                {"title": "Furniture Disassembly", "pricing_type": "fixed", "pricing_value": 200},
                {"title": "Storage Service", "pricing_type": "fixed", "pricing_value": 150},
                {"title": "Cleaning Service", "pricing_type": "fixed", "pricing_value": 175},
            ],
        },
        "contact-info": {
            "title": "Let's get your contact information",
            "subtitle": "We'll contact you within 1 hour with your detailed quote",
        },
        "review-quote": {
            "title": "Review Your Moving Quote",
            "subtitle": "Here's your personalized estimate based on your selections",
        },
    }
    return build_widget_document(
        widget_key=SAMPLE_WIDGET_KEY,
        enabled_modules=enabled_modules,
        module_configs=module_configs,
        settings={"tax_rate": 0.08, "service_area_miles": 100, "minimum_job_price": 200, "show_price_ranges": True},
        branding={"company_name": "Atlanta Moving Company", "primary_color": "#1E40AF", "secondary_color": "#1F2937"},
    )


def load_sample_moving_widget() -> WidgetConfiguration:
    return load_widget_configuration(sample_moving_widget_document())
