from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

LAYOUT_OPTIONS = "options"
LAYOUT_FORM = "form"
LAYOUT_ROUTE_CALCULATION = "route-calculation"

# Answer key used for the distance result when no route-calculation step is configured.
DEFAULT_DISTANCE_KEY = "distance-calculation"


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class FixedPrice:
    pricing_value: float


@dataclass(frozen=True)
class PercentagePrice:
    # Fraction of the running subtotal (0.15 == 15%).
    pricing_value: float


@dataclass(frozen=True)
class PerUnitPrice:
    pricing_value: float
    max_units: int = 1


@dataclass(frozen=True)
class DiscountPrice:
    # Negative fraction of the running subtotal (-0.05 == 5% off).
    pricing_value: float


@dataclass(frozen=True)
class BasePrice:
    base_price: float
    estimated_hours: float = 0.0
    price_range_min: float = 0.0
    price_range_max: float = 0.0


@dataclass(frozen=True)
class DistanceRate:
    cost_per_mile: float
    minimum_distance: float = 0.0


Estimation = Union[FixedPrice, PercentagePrice, PerUnitPrice, DiscountPrice, BasePrice, DistanceRate]


@dataclass(frozen=True)
class OptionDefinition:
    id: str
    value: str
    title: str
    description: str = ""
    icon: Optional[str] = None
    type: Optional[str] = None
    estimation: Optional[Estimation] = None

    def matches(self, token: object) -> bool:
        if token is None:
            return False
        t = str(token)
        return t == self.id or t == self.value


@dataclass(frozen=True)
class StepLayout:
    type: str = LAYOUT_OPTIONS
    columns: Optional[int] = None
    centered: bool = False


@dataclass(frozen=True)
class StepValidation:
    required: bool = False
    field: Optional[str] = None


@dataclass(frozen=True)
class StepDefinition:
    key: str
    title: str
    subtitle: Optional[str] = None
    layout: StepLayout = field(default_factory=StepLayout)
    options: Tuple[OptionDefinition, ...] = ()
    validation: StepValidation = field(default_factory=StepValidation)
    # Display-only metadata carried through for the host UI.
    prompt: Mapping[str, Any] = field(default_factory=dict)
    buttons: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_route_calculation(self) -> bool:
        return self.layout.type == LAYOUT_ROUTE_CALCULATION

    def distance_rate(self) -> Optional[DistanceRate]:
        for opt in self.options:
            if isinstance(opt.estimation, DistanceRate):
                return opt.estimation
        return None


@dataclass(frozen=True)
class EstimationSettings:
    tax_rate: float = 0.0
    service_area_miles: float = 0.0
    minimum_job_price: float = 0.0
    show_price_ranges: bool = False
    currency: str = "USD"
    currency_symbol: str = "$"


@dataclass(frozen=True)
class WidgetConfiguration:
    widget_id: str
    steps: Mapping[str, StepDefinition]
    step_order: Tuple[str, ...]
    branding: Mapping[str, Any] = field(default_factory=dict)
    estimation_settings: EstimationSettings = field(default_factory=EstimationSettings)

    def __post_init__(self) -> None:
        if not self.step_order:
            raise ConfigurationError(f"Widget {self.widget_id!r} has an empty step_order")
        missing = [k for k in self.step_order if k not in self.steps]
        if missing:
            raise ConfigurationError(
                f"Widget {self.widget_id!r} step_order references unknown step keys: {', '.join(missing)}"
            )

    def route_calculation_step_key(self) -> Optional[str]:
        """
        Key of the first route-calculation step, in `steps` order (not `step_order`).
        """
        for key, step in self.steps.items():
            if step.is_route_calculation:
                return key
        return None

    def distance_key(self) -> str:
        return self.route_calculation_step_key() or DEFAULT_DISTANCE_KEY

    def distance_rate(self) -> DistanceRate:
        key = self.route_calculation_step_key()
        rate = self.steps[key].distance_rate() if key is not None else None
        return rate or DistanceRate(cost_per_mile=0.0, minimum_distance=0.0)

    @property
    def company_name(self) -> str:
        name = self.branding.get("company_name") if isinstance(self.branding, Mapping) else None
        return str(name).strip() if isinstance(name, str) and name.strip() else ""


def _get(raw: Mapping[str, Any], *keys: str) -> Any:
    # Configuration documents use snake_case; camelCase is accepted too.
    for k in keys:
        if k in raw:
            return raw[k]
    return None


def _as_float(value: Any, key: str, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid numeric value for {key}: {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConfigurationError(f"Invalid numeric value for {key}: {value!r}") from exc
    if not math.isfinite(result):
        raise ConfigurationError(f"Non-finite numeric value for {key}: {value!r}")
    return result


def _as_int(value: Any, key: str, default: int = 0) -> int:
    return int(_as_float(value, key, float(default)))


def _as_optional_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    v = value.strip()
    return v if v else None


def parse_estimation(raw: Any, *, where: str = "estimation") -> Optional[Estimation]:
    """
    Turn a raw `estimation` object into one of the pricing-rule variants.

    Exactly one shape is active per option. Precedence: `pricing_type`, then
    `base_price`, then the distance rate. Anything else (e.g. `price_multiplier`)
    carries no price.
    """
    if not isinstance(raw, Mapping):
        return None

    pricing_type = _as_optional_str(_get(raw, "pricing_type", "pricingType"))
    if pricing_type is not None:
        value = _as_float(_get(raw, "pricing_value", "pricingValue"), f"{where}.pricing_value")
        pt = pricing_type.lower()
        if pt == "fixed":
            return FixedPrice(pricing_value=value)
        if pt == "percentage":
            return PercentagePrice(pricing_value=value)
        if pt == "per_unit":
            max_units = _as_int(_get(raw, "max_units", "maxUnits"), f"{where}.max_units", default=1)
            return PerUnitPrice(pricing_value=value, max_units=max_units)
        if pt == "discount":
            return DiscountPrice(pricing_value=value)
        raise ConfigurationError(f"Unknown pricing_type {pricing_type!r} in {where}")

    base_price = _get(raw, "base_price", "basePrice")
    if base_price is not None:
        return BasePrice(
            base_price=_as_float(base_price, f"{where}.base_price"),
            estimated_hours=_as_float(_get(raw, "estimated_hours", "estimatedHours"), f"{where}.estimated_hours"),
            price_range_min=_as_float(_get(raw, "price_range_min", "priceRangeMin"), f"{where}.price_range_min"),
            price_range_max=_as_float(_get(raw, "price_range_max", "priceRangeMax"), f"{where}.price_range_max"),
        )

    cost_per_mile = _get(raw, "cost_per_mile", "costPerMile")
    if cost_per_mile is not None:
        return DistanceRate(
            cost_per_mile=_as_float(cost_per_mile, f"{where}.cost_per_mile"),
            minimum_distance=_as_float(_get(raw, "minimum_distance", "minimumDistance"), f"{where}.minimum_distance"),
        )
    return None


def _parse_option(raw: Mapping[str, Any], *, step_key: str, index: int) -> OptionDefinition:
    where = f"steps_data.{step_key}.options[{index}]"
    opt_id = raw.get("id")
    value = raw.get("value")
    opt_id_s = str(opt_id) if opt_id is not None else ""
    value_s = str(value) if value is not None else ""
    if not opt_id_s and not value_s:
        raise ConfigurationError(f"{where} needs an id or a value")
    title = raw.get("title")
    return OptionDefinition(
        id=opt_id_s or value_s,
        value=value_s or opt_id_s,
        title=str(title) if isinstance(title, str) else "",
        description=str(raw.get("description") or ""),
        icon=_as_optional_str(raw.get("icon")),
        type=_as_optional_str(raw.get("type")),
        estimation=parse_estimation(raw.get("estimation"), where=f"{where}.estimation"),
    )


def _parse_step(key: str, raw: Mapping[str, Any]) -> StepDefinition:
    layout_raw = raw.get("layout")
    layout = StepLayout()
    if isinstance(layout_raw, Mapping):
        columns = layout_raw.get("columns")
        layout = StepLayout(
            type=_as_optional_str(layout_raw.get("type")) or LAYOUT_OPTIONS,
            columns=_as_int(columns, f"steps_data.{key}.layout.columns") if columns is not None else None,
            centered=bool(layout_raw.get("centered", False)),
        )

    validation_raw = raw.get("validation")
    validation = StepValidation()
    if isinstance(validation_raw, Mapping):
        validation = StepValidation(
            required=bool(validation_raw.get("required", False)),
            field=_as_optional_str(validation_raw.get("field")),
        )

    options: List[OptionDefinition] = []
    options_raw = raw.get("options")
    if isinstance(options_raw, list):
        for idx, opt in enumerate(options_raw):
            if isinstance(opt, Mapping):
                options.append(_parse_option(opt, step_key=key, index=idx))

    title = raw.get("title")
    prompt = raw.get("prompt")
    buttons = raw.get("buttons")
    return StepDefinition(
        key=key,
        title=str(title) if isinstance(title, str) else key,
        subtitle=_as_optional_str(raw.get("subtitle")),
        layout=layout,
        options=tuple(options),
        validation=validation,
        prompt=dict(prompt) if isinstance(prompt, Mapping) else {},
        buttons=dict(buttons) if isinstance(buttons, Mapping) else {},
    )


def _parse_settings(raw: Any) -> EstimationSettings:
    if not isinstance(raw, Mapping):
        return EstimationSettings()
    return EstimationSettings(
        tax_rate=_as_float(_get(raw, "tax_rate", "taxRate"), "estimation_settings.tax_rate"),
        service_area_miles=_as_float(
            _get(raw, "service_area_miles", "serviceAreaMiles"), "estimation_settings.service_area_miles"
        ),
        minimum_job_price=_as_float(
            _get(raw, "minimum_job_price", "minimumJobPrice"), "estimation_settings.minimum_job_price"
        ),
        show_price_ranges=bool(_get(raw, "show_price_ranges", "showPriceRanges") or False),
        currency=_as_optional_str(raw.get("currency")) or "USD",
        currency_symbol=_as_optional_str(_get(raw, "currency_symbol", "currencySymbol")) or "$",
    )


def load_widget_configuration(data: Any) -> WidgetConfiguration:
    """
    Build a `WidgetConfiguration` from a JSON-shaped document.

    Raises `ConfigurationError` for anything the engine cannot trust: a non-object
    document, an empty `step_order`, or keys in `step_order` with no step definition.
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("Widget configuration must be a JSON object")

    widget_id = _get(data, "widget_id", "widgetId")
    widget_id_s = str(widget_id).strip() if widget_id is not None else ""
    if not widget_id_s:
        raise ConfigurationError("Missing/invalid 'widget_id'")

    steps_raw = _get(data, "steps_data", "steps")
    if not isinstance(steps_raw, Mapping):
        raise ConfigurationError(f"Widget {widget_id_s!r} has no steps_data object")
    steps: Dict[str, StepDefinition] = {}
    for key, step_raw in steps_raw.items():
        if not isinstance(step_raw, Mapping):
            raise ConfigurationError(f"Step {key!r} must be an object")
        steps[str(key)] = _parse_step(str(key), step_raw)

    order_raw = _get(data, "step_order", "stepOrder")
    if not isinstance(order_raw, list):
        raise ConfigurationError(f"Widget {widget_id_s!r} has no step_order list")

    branding = data.get("branding")
    config = WidgetConfiguration(
        widget_id=widget_id_s,
        steps=steps,
        step_order=tuple(str(k) for k in order_raw),
        branding=dict(branding) if isinstance(branding, Mapping) else {},
        estimation_settings=_parse_settings(_get(data, "estimation_settings", "estimationSettings")),
    )
    logger.debug(
        "Loaded widget %s: %d steps, order=%s",
        config.widget_id,
        len(config.steps),
        ",".join(config.step_order),
    )
    return config


def load_widget_configuration_file(path: Path) -> WidgetConfiguration:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read widget configuration {path}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Widget configuration {path} is not valid JSON: {exc}") from exc
    return load_widget_configuration(data)
