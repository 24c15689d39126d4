from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from pricing_rules import LineKind, QuoteLineItem, evaluate, resolve_answer, round_money
from selection_state import SelectionState, is_answered
from step_sequencer import visible_order
from widget_config import WidgetConfiguration

DISTANCE_LINE_LABEL = "Travel distance"


@dataclass(frozen=True)
class QuoteBreakdown:
    items: Tuple[QuoteLineItem, ...]
    subtotal: float
    applied_minimum: bool
    minimum_job_price: float
    total: float
    currency_symbol: str = "$"

    def format_amount(self, amount: float) -> str:
        sign = "-" if amount < 0 else ""
        return f"{sign}{self.currency_symbol}{abs(amount):,.2f}"

    def to_summary(self) -> Dict[str, Any]:
        """
        Summary shape sent along with a lead submission.
        """
        return {
            "items": [li.to_dict() for li in self.items],
            "subtotal": self.subtotal,
            "appliedMinimum": self.applied_minimum,
            "minimumJobPrice": self.minimum_job_price,
            "total": self.total,
        }


def apply_minimum(subtotal: float, minimum_job_price: float) -> Tuple[float, bool]:
    applied = minimum_job_price > 0 and subtotal < minimum_job_price
    return (float(minimum_job_price) if applied else float(subtotal)), applied


def aggregate(config: WidgetConfiguration, selections: SelectionState) -> QuoteBreakdown:
    """
    Compute the quote for the current answers.

    Steps are priced in visible order, each against the subtotal accrued by the
    steps before it, so percentage and discount rules never see later steps. The
    distance cost is always the last line, and the minimum job price is applied to
    the final subtotal.
    """
    items: List[QuoteLineItem] = []
    subtotal = 0.0

    for key in visible_order(config):
        step = config.steps[key]
        answer = selections.get(key)
        if not is_answered(answer):
            continue
        option, units = resolve_answer(step, answer)
        line = evaluate(option, subtotal, units=units, fallback_label=step.title or key)
        if line is None:
            continue
        items.append(line)
        subtotal = round_money(subtotal + line.amount)

    distance = selections.distance_result(config.distance_key())
    if distance is not None:
        items.append(
            QuoteLineItem(
                label=DISTANCE_LINE_LABEL,
                amount=round_money(distance.estimated_cost),
                meta=f"{distance.miles:.1f} miles" if distance.miles else None,
                kind=LineKind.DISTANCE,
            )
        )
        subtotal = round_money(subtotal + distance.estimated_cost)

    settings = config.estimation_settings
    total, applied = apply_minimum(subtotal, settings.minimum_job_price)
    return QuoteBreakdown(
        items=tuple(items),
        subtotal=subtotal,
        applied_minimum=applied,
        minimum_job_price=float(settings.minimum_job_price),
        total=total,
        currency_symbol=settings.currency_symbol,
    )
