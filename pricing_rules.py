from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

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


class LineKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    PER_UNIT = "per_unit"
    DISCOUNT = "discount"
    BASE_PRICE = "base_price"
    DISTANCE = "distance"


@dataclass(frozen=True)
class QuoteLineItem:
    label: str
    amount: float
    meta: Optional[str] = None
    kind: LineKind = LineKind.FIXED
    units: int = 1

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"label": self.label, "amount": self.amount, "kind": self.kind.value}
        if self.meta:
            out["meta"] = self.meta
        if self.kind == LineKind.PER_UNIT:
            out["units"] = self.units
        return out


def round_money(value: float) -> float:
    # Normalises -0.0 so discounts on an empty subtotal print as 0.00.
    return round(float(value), 2) + 0.0


def match_option(step: StepDefinition, token: object) -> Optional[OptionDefinition]:
    """
    Find the option a selection token refers to. `id` and `value` are equally valid.
    """
    for opt in step.options:
        if opt.matches(token):
            return opt
    return None


def _parse_units(value: object) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    # "inf", "nan" and "1e999" are free text, not quantities.
    if not math.isfinite(number):
        return None
    return int(number)


def _first_per_unit_option(step: StepDefinition) -> Optional[OptionDefinition]:
    for opt in step.options:
        if isinstance(opt.estimation, PerUnitPrice):
            return opt
    return None


def resolve_answer(step: StepDefinition, answer: Any) -> Tuple[Optional[OptionDefinition], int]:
    """
    Map a raw step answer to `(option, units)`.

    - a token equal to an option's id/value selects that option with 1 unit;
    - `{"option": token, "units": n}` selects the option with an explicit quantity;
    - a bare number that matches no option is a quantity for the step's first
      per-unit option (quantity-style steps such as "flights of stairs").
    """
    if isinstance(answer, Mapping):
        opt = match_option(step, answer.get("option"))
        units = _parse_units(answer.get("units"))
        return opt, 1 if units is None else units

    opt = match_option(step, answer)
    if opt is not None:
        return opt, 1

    units = _parse_units(answer)
    if units is not None:
        per_unit = _first_per_unit_option(step)
        if per_unit is not None:
            return per_unit, units
    return None, 1


def evaluate(
    option: Optional[OptionDefinition],
    running_subtotal: float,
    *,
    units: int = 1,
    fallback_label: str = "",
) -> Optional[QuoteLineItem]:
    """
    Price one selected option against the subtotal accrued by earlier steps.

    Returns None when the option carries no price (no estimation, or the distance
    rate, which is priced by the distance resolver instead).
    """
    if option is None:
        return None
    est = option.estimation
    label = option.title or fallback_label or option.value
    meta = option.description or None

    if isinstance(est, FixedPrice):
        return QuoteLineItem(label=label, amount=round_money(est.pricing_value), meta=meta, kind=LineKind.FIXED)
    if isinstance(est, PercentagePrice):
        return QuoteLineItem(
            label=label,
            amount=round_money(running_subtotal * est.pricing_value),
            meta=meta,
            kind=LineKind.PERCENTAGE,
        )
    if isinstance(est, DiscountPrice):
        return QuoteLineItem(
            label=label,
            amount=round_money(running_subtotal * -abs(est.pricing_value)),
            meta=meta,
            kind=LineKind.DISCOUNT,
        )
    if isinstance(est, PerUnitPrice):
        billable = max(0, min(int(units), int(est.max_units)))
        return QuoteLineItem(
            label=label,
            amount=round_money(est.pricing_value * billable),
            meta=meta,
            kind=LineKind.PER_UNIT,
            units=billable,
        )
    if isinstance(est, BasePrice):
        return QuoteLineItem(label=label, amount=round_money(est.base_price), meta=meta, kind=LineKind.BASE_PRICE)
    if isinstance(est, DistanceRate) or est is None:
        return None
    raise TypeError(f"Unsupported estimation variant: {type(est).__name__}")
