from __future__ import annotations

import html
import json
import logging
import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import httpx

from selection_state import SelectionState

if TYPE_CHECKING:
    from quote_engine import QuoteBreakdown

logger = logging.getLogger(__name__)

_PHONE_FIELDS = ("contact-phone", "phone")
_ORIGIN_FIELDS = ("origin-location", "origin")


class SubmissionError(RuntimeError):
    pass


def _normalize_to_string(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first_present(data: Mapping[str, Any], keys: tuple[str, ...]) -> object:
    for k in keys:
        if data.get(k) is not None:
            return data.get(k)
    return None


def is_phone_valid(value: Optional[str]) -> bool:
    if not value:
        return False
    return len(re.sub(r"\D", "", value)) >= 10


def validate_before_submit(form_data: Mapping[str, Any], *, origin_address: str = "") -> List[str]:
    """
    Return the human-readable names of required contact details that are missing.

    An empty list means the lead can be submitted.
    """
    missing: List[str] = []
    phone = _normalize_to_string(_first_present(form_data, _PHONE_FIELDS))
    if not is_phone_valid(phone):
        missing.append("phone number")
    start = _normalize_to_string(_first_present(form_data, _ORIGIN_FIELDS)) or origin_address.strip()
    if not start:
        missing.append("starting address")
    return missing


def missing_fields_message(missing: List[str]) -> str:
    return f"Please provide your {' and '.join(missing)} before submitting."


def source_host_from(*candidates: Optional[str]) -> Optional[str]:
    """
    First usable host among explicit host / Origin / Referer style values.
    """
    for value in candidates:
        if not value:
            continue
        host = urlparse(value).hostname or value
        if isinstance(host, str) and host.strip():
            return host.strip().lower()
    return None


def build_submission_payload(
    *,
    widget_id: str,
    selections: SelectionState,
    breakdown: "QuoteBreakdown",
    source_host: Optional[str] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "widget_key": widget_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "data": selections.to_dict(),
        "summary": breakdown.to_summary(),
    }
    if source_host:
        payload["source_host"] = source_host
    return payload


def _money(symbol: str, amount: object) -> str:
    try:
        value = float(amount)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        value = 0.0
    return f"{symbol}{value:,.2f}"


def render_summary_html(payload: Mapping[str, Any], *, currency_symbol: str = "$") -> str:
    """
    HTML body for the "new quote request" notification email.
    """
    summary = payload.get("summary") or {}
    items = summary.get("items") or []
    lines = ["<h2>New quote request</h2>"]
    if payload.get("widget_key"):
        lines.append(f"<p><strong>Widget:</strong> {html.escape(str(payload['widget_key']))}</p>")

    if items:
        lines.append("<h3>Cost Summary</h3>")
        lines.append("<ul>")
        for item in items:
            label = html.escape(str(item.get("label") or "Item"))
            amount = _money(currency_symbol, item.get("amount"))
            meta = f" <small>({html.escape(str(item['meta']))})</small>" if item.get("meta") else ""
            lines.append(f"<li><strong>{label}:</strong> {amount}{meta}</li>")
        lines.append("</ul>")

    if "subtotal" in summary:
        lines.append(f"<p><strong>Subtotal:</strong> {_money(currency_symbol, summary['subtotal'])}</p>")
    if summary.get("appliedMinimum") and "minimumJobPrice" in summary:
        lines.append(
            f"<p><strong>Minimum job price applied:</strong> {_money(currency_symbol, summary['minimumJobPrice'])}</p>"
        )
    if "total" in summary:
        lines.append(f"<p><strong>Estimated total:</strong> {_money(currency_symbol, summary['total'])}</p>")

    lines.append("<h3>Submitted Data</h3>")
    data_json = json.dumps(payload.get("data") or {}, indent=2, default=str)
    lines.append(f"<pre>{html.escape(data_json)}</pre>")
    return "\n".join(lines)


def render_summary_text(payload: Mapping[str, Any], *, currency_symbol: str = "$", company_name: str = "") -> str:
    summary = payload.get("summary") or {}
    lines = [f"{company_name or 'Quote'} - Estimate"]
    if payload.get("widget_key"):
        lines.append(f"Widget: {payload['widget_key']}")
    lines.append("")
    lines.append("Line items:")
    for item in summary.get("items") or []:
        meta = f" ({item['meta']})" if item.get("meta") else ""
        lines.append(f"- {item.get('label') or 'Item'}: {_money(currency_symbol, item.get('amount'))}{meta}")
    lines.append("")
    lines.append(f"Subtotal: {_money(currency_symbol, summary.get('subtotal'))}")
    if summary.get("appliedMinimum"):
        lines.append(f"Minimum job price applied: {_money(currency_symbol, summary.get('minimumJobPrice'))}")
    lines.append(f"Estimated total: {_money(currency_symbol, summary.get('total'))}")
    return "\n".join(lines) + "\n"


def post_lead_submission(
    *,
    url: str,
    payload: Mapping[str, Any],
    timeout_s: float = 15.0,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    POST the lead to the submission endpoint.

    Returns the decoded JSON response (or {} if the body is not JSON). Raises
    `SubmissionError` on transport errors and non-2xx responses.
    """
    body = json.loads(json.dumps(payload, default=str))
    headers = {"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"}
    try:
        if client is not None:
            resp = client.post(url, json=body, headers=headers, timeout=timeout_s)
        else:
            with httpx.Client(timeout=timeout_s) as c:
                resp = c.post(url, json=body, headers=headers)
    except httpx.HTTPError as exc:
        raise SubmissionError(f"Quote failed to send: {exc}") from exc

    logger.info("Lead submission POST %s -> HTTP %s", url, resp.status_code)
    if resp.status_code < 200 or resp.status_code >= 300:
        raise SubmissionError(f"Quote failed to send (HTTP {resp.status_code}): {resp.text[:500]}")
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
