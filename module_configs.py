from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from widget_config import WidgetConfiguration, load_widget_configuration

PROMPT_TYPES: Mapping[str, str] = {
    "service-selection": "avatar",
    "date-selection": "calendar",
    "origin-location": "address",
    "target-location": "address",
    "distance-calculation": "calculation",
    "chat-integration": "chat",
}

MODULE_BUTTONS: Mapping[str, Mapping[str, Any]] = {
    "supply-inquiry": {"primary": {"text": "Continue", "action": "auto"}},
    "contact-info": {"primary": {"text": "Get Quote", "action": "submit"}},
    "review-quote": {
        "primary": {"text": "Confirm", "action": "submit"},
        "secondary": {"text": "Back", "action": "back"},
    },
}
DEFAULT_BUTTONS: Mapping[str, Any] = {"primary": {"text": "Continue", "action": "next"}}

MODULE_LAYOUTS: Mapping[str, Mapping[str, Any]] = {
    "date-selection": {"type": "calendar", "centered": True},
    "origin-location": {"type": "form", "centered": False},
    "target-location": {"type": "form", "centered": False},
    "origin-challenges": {"type": "challenges", "centered": False},
    "target-challenges": {"type": "challenges", "centered": False},
    "distance-calculation": {"type": "route-calculation", "centered": True},
    "supply-selection": {"type": "catalog", "columns": 2},
    "additional-services": {"type": "list", "selectable": "multiple"},
}
DEFAULT_LAYOUT: Mapping[str, Any] = {"type": "grid", "columns": 1, "centered": True}

REQUIRED_MODULES = frozenset({"service-selection", "contact-info", "review-quote"})

MULTIPLIER_MODULES = frozenset({"service-type", "location-type", "time-selection"})
CHALLENGE_MODULES = frozenset({"origin-challenges", "target-challenges"})

DEFAULT_COST_PER_MILE = 4.00


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def humanize_module_key(module_key: str) -> str:
    return " ".join(w.capitalize() for w in module_key.replace("-", " ").split())


def _option_estimation(module_key: str, option: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    if module_key == "project-scope":
        return {
            "base_price": _float(option.get("base_price")),
            "estimated_hours": _float(option.get("estimated_hours")),
            "price_range_min": _float(option.get("price_range_min")),
            "price_range_max": _float(option.get("price_range_max")),
        }
    if module_key in MULTIPLIER_MODULES and "price_multiplier" in option:
        return {"price_multiplier": _float(option.get("price_multiplier"))}
    if module_key in CHALLENGE_MODULES:
        return {
            "pricing_type": option.get("pricing_type") or "fixed",
            "pricing_value": _float(option.get("pricing_value")),
            "max_units": _int(option.get("max_units"), 1),
        }
    if module_key == "additional-services":
        return {
            "pricing_type": option.get("pricing_type") or "fixed",
            "pricing_value": _float(option.get("pricing_value")),
        }
    return None


def format_module_options(module_key: str, module_config: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Options of one module in the widget document shape.

    Option ids are positional (`{module}_option_{n}`); the option title doubles as
    its value. The distance module gets a synthetic settings option carrying the
    per-mile rate.
    """
    options: List[Dict[str, Any]] = []
    raw_options = module_config.get("options")
    if isinstance(raw_options, list):
        for index, option in enumerate(raw_options):
            if not isinstance(option, Mapping):
                continue
            formatted: Dict[str, Any] = {
                "id": f"{module_key}_option_{index}",
                "value": option.get("title") or "",
                "title": option.get("title") or "",
                "description": option.get("description") or "",
                "icon": option.get("icon"),
                "type": "service",
            }
            estimation = _option_estimation(module_key, option)
            if estimation is not None:
                formatted["estimation"] = estimation
            options.append(formatted)

    if module_key == "distance-calculation":
        options.append(
            {
                "id": "distance_settings",
                "type": "distance_calculation",
                "estimation": {
                    "cost_per_mile": _float(module_config.get("cost_per_mile"), DEFAULT_COST_PER_MILE),
                    "minimum_distance": _float(module_config.get("minimum_distance")),
                },
            }
        )
    return options


def _step_from_module(module_key: str, module_config: Mapping[str, Any]) -> Dict[str, Any]:
    title = module_config.get("title") or humanize_module_key(module_key)
    return {
        "id": module_key,
        "title": title,
        "subtitle": module_config.get("subtitle"),
        "prompt": {"message": title, "type": PROMPT_TYPES.get(module_key, "text")},
        "options": format_module_options(module_key, module_config),
        "buttons": dict(MODULE_BUTTONS.get(module_key, DEFAULT_BUTTONS)),
        "layout": dict(MODULE_LAYOUTS.get(module_key, DEFAULT_LAYOUT)),
        "validation": {"required": module_key in REQUIRED_MODULES, "field": module_key},
    }


def _step_from_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    key = str(record.get("step_key") or record.get("id") or "")
    return {
        "id": key,
        "title": record.get("title"),
        "subtitle": record.get("subtitle"),
        "prompt": record.get("prompt"),
        "options": record.get("options") or [],
        "buttons": record.get("buttons"),
        "layout": record.get("layout"),
        "validation": record.get("validation"),
    }


def estimation_settings_from(settings: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    s = settings or {}
    return {
        "tax_rate": _float(s.get("tax_rate"), 0.08),
        "service_area_miles": _int(s.get("service_area_miles"), 100),
        "minimum_job_price": _float(s.get("minimum_job_price")),
        "show_price_ranges": bool(s.get("show_price_ranges", True)),
        "currency": "USD",
        "currency_symbol": "$",
    }


def build_widget_document(
    *,
    widget_key: str,
    enabled_modules: Sequence[str] = (),
    module_configs: Optional[Mapping[str, Mapping[str, Any]]] = None,
    settings: Optional[Mapping[str, Any]] = None,
    branding: Optional[Mapping[str, Any]] = None,
    steps: Optional[Sequence[Mapping[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Assemble the widget configuration document served to the renderer.

    Explicit step records win; otherwise one step is generated per enabled module
    that has a config, in `enabled_modules` order.
    """
    steps_data: Dict[str, Dict[str, Any]] = {}
    step_order: List[str] = []

    if steps:
        for record in steps:
            step = _step_from_record(record)
            if not step["id"]:
                continue
            steps_data[step["id"]] = step
            step_order.append(step["id"])
    elif enabled_modules and module_configs:
        for module_key in enabled_modules:
            module_config = module_configs.get(module_key)
            if not isinstance(module_config, Mapping):
                continue
            steps_data[module_key] = _step_from_module(module_key, module_config)
            step_order.append(module_key)

    return {
        "widget_id": widget_key,
        "steps_data": steps_data,
        "step_order": step_order,
        "branding": dict(branding or {}),
        "estimation_settings": estimation_settings_from(settings),
    }


def build_widget_configuration(**kwargs: Any) -> WidgetConfiguration:
    return load_widget_configuration(build_widget_document(**kwargs))
