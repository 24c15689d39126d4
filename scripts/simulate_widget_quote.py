from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from dotenv import load_dotenv

from distance_resolver import billable_distance_cost
from quote_engine import QuoteBreakdown, aggregate
from quote_pdf import artifact_from_breakdown, make_quote_pdf_bytes
from sample_widgets import load_sample_moving_widget
from selection_state import DistanceResult, SelectionState
from widget_config import ConfigurationError, WidgetConfiguration, load_widget_configuration_file
from widget_session import WidgetSession

logger = logging.getLogger("simulate_widget_quote")


def _selections_from(data: Mapping[str, Any], config: WidgetConfiguration) -> SelectionState:
    """
    Build the answers from a selections file:

        {"answers": {...}, "form_data": {...},
         "distance": {"origin": "...", "destination": "...", "miles": 12.4}}

    A distance with `miles` is priced offline at the widget's per-mile rate.
    """
    answers = dict(data.get("answers") or {})
    state = SelectionState(answers=answers, form_data=dict(data.get("form_data") or {}))
    distance = data.get("distance")
    if isinstance(distance, Mapping) and distance.get("miles") is not None:
        rate = config.distance_rate()
        miles = float(distance["miles"])
        state = state.with_answer(
            config.distance_key(),
            DistanceResult(
                origin=str(distance.get("origin") or ""),
                destination=str(distance.get("destination") or ""),
                miles=miles,
                estimated_cost=billable_distance_cost(miles, rate.cost_per_mile, rate.minimum_distance),
                cost_per_mile=rate.cost_per_mile,
            ),
        )
    return state


async def _resolve_live(config: WidgetConfiguration, state: SelectionState, distance: Mapping[str, Any]) -> SelectionState:
    session = WidgetSession(config)
    await session.resolve_distance(str(distance.get("origin") or ""), str(distance.get("destination") or ""))
    if session.distance_result is None:
        logger.warning("Distance not resolved: %s", session.distance_error)
        return state
    return state.with_answer(config.distance_key(), session.distance_result)


def _print_breakdown(config: WidgetConfiguration, breakdown: QuoteBreakdown) -> None:
    print(f"Widget: {config.widget_id} ({config.company_name or '-'})")
    for li in breakdown.items:
        meta = f"  [{li.meta}]" if li.meta else ""
        print(f"  - {li.label}: {breakdown.format_amount(li.amount)}{meta}")
    print(f"Subtotal: {breakdown.format_amount(breakdown.subtotal)}")
    if breakdown.applied_minimum:
        print(f"Minimum job price applied: {breakdown.format_amount(breakdown.minimum_job_price)}")
    print(f"Total: {breakdown.format_amount(breakdown.total)}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Price a set of widget answers and print the quote breakdown.")
    parser.add_argument("--config", help="Widget configuration JSON (defaults to the sample moving widget).")
    parser.add_argument("--selections", required=True, help="Selections JSON (answers, form_data, distance).")
    parser.add_argument("--pdf", help="Optional: write the quote summary PDF to this path.")
    parser.add_argument("--verbose", action="store_true", help="Log engine activity to stderr.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv(dotenv_path=Path.cwd() / ".env")

    try:
        config = load_widget_configuration_file(Path(args.config)) if args.config else load_sample_moving_widget()
    except ConfigurationError as exc:
        raise SystemExit(f"Invalid widget configuration: {exc}")

    data = json.loads(Path(args.selections).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise SystemExit("Selections file must contain a JSON object")
    state = _selections_from(data, config)

    distance = data.get("distance")
    if isinstance(distance, Mapping) and distance.get("miles") is None and distance.get("origin"):
        state = asyncio.run(_resolve_live(config, state, distance))

    breakdown = aggregate(config, state)
    _print_breakdown(config, breakdown)

    if args.pdf:
        artifact = artifact_from_breakdown(
            breakdown,
            quote_id="SIM",
            quote_date=date.today(),
            company_name=config.company_name,
            widget_id=config.widget_id,
            customer_name=str(state.form_data.get("contact-name") or ""),
            customer_phone=str(state.form_data.get("contact-phone") or ""),
        )
        out = Path(args.pdf)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(make_quote_pdf_bytes(artifact))
        print(f"PDF: {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
