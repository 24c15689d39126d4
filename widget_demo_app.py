from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from datetime import date
from pathlib import Path

import streamlit as st
from dotenv import load_dotenv

from distance_resolver import DistanceStatus
from geocoding import MapboxGeocoder
from lead_submission import (
    SubmissionError,
    missing_fields_message,
    post_lead_submission,
    render_summary_text,
)
from pricing_rules import resolve_answer
from quote_engine import QuoteBreakdown
from quote_pdf import artifact_from_breakdown, make_quote_pdf_bytes
from sample_widgets import load_sample_moving_widget
from widget_config import (
    LAYOUT_FORM,
    ConfigurationError,
    PerUnitPrice,
    StepDefinition,
    WidgetConfiguration,
    load_widget_configuration_file,
)
from widget_session import DESTINATION_STEP_KEY, ORIGIN_STEP_KEY, WidgetSession

logger = logging.getLogger(__name__)

_NO_SELECTION = "(none)"


def _read_secret_or_env_str(key: str) -> str:
    """
    Read a configuration value from Streamlit Secrets (preferred) or environment variables.

    Returns a stripped string; returns "" when missing.
    """
    val: object = ""
    try:
        # `st.secrets` raises when no secrets file exists at all.
        val = st.secrets.get(key, "")  # type: ignore[attr-defined]
    except Exception:
        val = ""
    if not val:
        val = os.environ.get(key, "")
    if isinstance(val, str):
        return val.strip()
    return str(val).strip() if val is not None else ""


def _load_configuration() -> WidgetConfiguration:
    path = _read_secret_or_env_str("WIDGET_CONFIG_PATH")
    if path:
        return load_widget_configuration_file(Path(path))
    return load_sample_moving_widget()


def _make_session(config: WidgetConfiguration) -> WidgetSession:
    token = _read_secret_or_env_str("MAPBOX_TOKEN")
    if not token:
        return WidgetSession(config)
    timeout_raw = _read_secret_or_env_str("GEOCODING_TIMEOUT_S")
    try:
        timeout_s = float(timeout_raw) if timeout_raw else 10.0
    except ValueError:
        timeout_s = 10.0
    return WidgetSession(config, geocoder=MapboxGeocoder(token, timeout_s=timeout_s))


def _session() -> WidgetSession:
    session = st.session_state.get("widget_session")
    if not isinstance(session, WidgetSession):
        try:
            config = _load_configuration()
        except ConfigurationError as exc:
            st.error(f"Widget configuration is invalid: {exc}")
            st.stop()
        session = _make_session(config)
        st.session_state["widget_session"] = session
    return session


def _reset(session: WidgetSession) -> None:
    session.reset()
    for key in list(st.session_state.keys()):
        if isinstance(key, str) and key.startswith("step_"):
            del st.session_state[key]
    st.session_state.pop("submit_result", None)
    st.session_state.pop("quote_id", None)


def _quote_id() -> str:
    qid = st.session_state.get("quote_id")
    if not isinstance(qid, str) or not qid:
        qid = uuid.uuid4().hex[:10].upper()
        st.session_state["quote_id"] = qid
    return qid


def _build_pdf_bytes(session: WidgetSession, breakdown: QuoteBreakdown) -> bytes:
    form = session.selections.form_data
    artifact = artifact_from_breakdown(
        breakdown,
        quote_id=_quote_id(),
        quote_date=date.today(),
        company_name=session.config.company_name,
        widget_id=session.config.widget_id,
        customer_name=str(form.get("contact-name") or ""),
        customer_phone=str(form.get("contact-phone") or ""),
        origin_address=session.origin_address,
        destination_address=session.destination_address,
    )
    return make_quote_pdf_bytes(artifact)


def _render_sidebar(session: WidgetSession, breakdown: QuoteBreakdown) -> None:
    config = session.config
    st.sidebar.subheader(config.company_name or "Quote")

    with st.sidebar.expander("Steps", expanded=True):
        order = session.get_visible_order()
        for idx, key in enumerate(order):
            marker = "➡️" if idx == session.current_index else "•"
            st.write(f"{marker} {config.steps[key].title}")
        st.progress((session.current_index + 1) / max(1, len(order)))

    st.sidebar.caption("Estimate")
    st.sidebar.metric("Total", breakdown.format_amount(breakdown.total))
    if breakdown.applied_minimum:
        st.sidebar.caption(f"Minimum job price of {breakdown.format_amount(breakdown.minimum_job_price)} applied.")
    if breakdown.items:
        rows = [
            {"Item": li.label, "Detail": li.meta or "", "Amount": breakdown.format_amount(li.amount)}
            for li in breakdown.items
        ]
        st.sidebar.dataframe(rows, use_container_width=True, hide_index=True)
    else:
        st.sidebar.write("No priced selections yet.")

    status = session.distance_status
    if status == DistanceStatus.LOADING:
        st.sidebar.info("Calculating distance...")
    elif status == DistanceStatus.ERROR and session.distance_error:
        st.sidebar.warning(session.distance_error)

    with st.sidebar.expander("Actions", expanded=False):
        if st.button("Start over", use_container_width=True):
            _reset(session)
            st.rerun()
        payload = session.build_submission()
        st.download_button(
            "Download quote (JSON)",
            data=json.dumps(payload, indent=2, default=str),
            file_name="quote.json",
            mime="application/json",
            use_container_width=True,
        )
        st.download_button(
            "Download quote (TXT)",
            data=render_summary_text(
                payload, currency_symbol=breakdown.currency_symbol, company_name=config.company_name
            ),
            file_name="quote.txt",
            mime="text/plain",
            use_container_width=True,
        )
        try:
            st.download_button(
                "Download quote (PDF)",
                data=_build_pdf_bytes(session, breakdown),
                file_name="quote.pdf",
                mime="application/pdf",
                use_container_width=True,
            )
        except (ValueError, TypeError) as exc:
            logger.warning("PDF export failed: %s", exc)
            st.caption("PDF export unavailable.")


def _render_address_step(session: WidgetSession, step: StepDefinition) -> None:
    current = session.origin_address if step.key == ORIGIN_STEP_KEY else session.destination_address
    value = st.text_input("Address", value=current, key=f"step_{step.key}_address")
    if value.strip() != current.strip():
        session.set_form_field(step.key, step.validation.field or step.key, value.strip())

    if session.should_resolve_distance():
        with st.spinner("Calculating distance..."):
            asyncio.run(session.maybe_resolve_distance())

    result = session.distance_result
    if result is not None and step.key == DESTINATION_STEP_KEY:
        st.success(f"{result.miles:.1f} miles from {result.origin} to {result.destination}")
    elif session.distance_status == DistanceStatus.ERROR and session.distance_error:
        st.warning(session.distance_error)
        if st.button("Retry distance", key=f"step_{step.key}_retry"):
            asyncio.run(session.resolve_distance())
            st.rerun()


def _render_contact_step(session: WidgetSession, step: StepDefinition) -> None:
    form = session.selections.form_data
    for field_id, label in (("contact-name", "Name"), ("contact-phone", "Phone"), ("contact-email", "Email")):
        current = str(form.get(field_id) or "")
        value = st.text_input(label, value=current, key=f"step_{field_id}")
        if value != current:
            session.set_form_field(step.key, field_id, value)


def _render_review_step(session: WidgetSession, breakdown: QuoteBreakdown) -> None:
    for li in breakdown.items:
        cols = st.columns([4, 2])
        cols[0].write(f"{li.label}" + (f" ({li.meta})" if li.meta else ""))
        cols[1].write(breakdown.format_amount(li.amount))
    st.write(f"**Subtotal:** {breakdown.format_amount(breakdown.subtotal)}")
    if breakdown.applied_minimum:
        st.write(f"**Minimum job price applied:** {breakdown.format_amount(breakdown.minimum_job_price)}")
    st.metric("Estimated total", breakdown.format_amount(breakdown.total))

    if st.button("Submit request", type="primary", use_container_width=True):
        problems = session.submission_problems()
        if problems:
            st.error(missing_fields_message(problems))
            return
        payload = session.build_submission(source_host=_read_secret_or_env_str("LEAD_SOURCE_HOST") or None)
        url = _read_secret_or_env_str("LEAD_SUBMIT_URL")
        if not url:
            st.session_state["submit_result"] = ("info", "LEAD_SUBMIT_URL not set; skipped POST.")
        else:
            try:
                post_lead_submission(url=url, payload=payload)
                st.session_state["submit_result"] = ("success", "Thanks! We'll be in touch shortly.")
            except SubmissionError as exc:
                st.session_state["submit_result"] = ("error", str(exc))

    result = st.session_state.get("submit_result")
    if isinstance(result, tuple) and len(result) == 2:
        kind, message = result
        getattr(st, kind, st.info)(message)


def _render_option_step(session: WidgetSession, step: StepDefinition) -> None:
    titles = [opt.title or opt.value for opt in step.options]
    answer = session.selections.get(step.key)
    option, units = resolve_answer(step, answer) if answer is not None else (None, 1)
    choices = [_NO_SELECTION, *titles]
    index = choices.index(option.title or option.value) if option is not None else 0
    picked = st.radio(step.subtitle or "Choose one", choices, index=index, key=f"step_{step.key}_option")
    if picked == _NO_SELECTION:
        if answer is not None:
            session.clear_answer(step.key)
        return

    chosen = step.options[titles.index(picked)]
    if isinstance(chosen.estimation, PerUnitPrice):
        qty = st.number_input(
            "How many?",
            min_value=0,
            max_value=max(1, chosen.estimation.max_units),
            value=max(1, units),
            step=1,
            key=f"step_{step.key}_units",
        )
        if option is not chosen or int(qty) != units:
            session.select_quantity(step.key, int(qty), option=chosen.id)
    elif option is not chosen:
        session.select_option(step.key, chosen.id)


def _render_step_controls(session: WidgetSession) -> None:
    col1, col2, _ = st.columns([1, 1, 6])
    if session.has_previous and col1.button("Back", use_container_width=True):
        session.retreat()
        st.rerun()
    if session.has_next:
        if col2.button("Next", disabled=not session.can_advance(), use_container_width=True):
            session.advance()
            st.rerun()


def main() -> None:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    st.set_page_config(page_title="Lead Qualification Widget - Demo", layout="wide")

    session = _session()
    step = session.get_current_step()
    if step is None:
        st.error("This widget has no visible steps.")
        st.stop()

    st.title(step.title)
    if step.subtitle and step.layout.type == LAYOUT_FORM:
        st.caption(step.subtitle)

    if step.key in (ORIGIN_STEP_KEY, DESTINATION_STEP_KEY):
        _render_address_step(session, step)
    elif step.key == "contact-info":
        _render_contact_step(session, step)
    elif step.key == "review-quote":
        _render_review_step(session, session.get_quote_breakdown())
    elif step.options:
        _render_option_step(session, step)
    else:
        text = st.text_area("Your answer", value=str(session.selections.get(step.key) or ""), key=f"step_{step.key}_text")
        if text != str(session.selections.get(step.key) or ""):
            session.select_option(step.key, text)

    _render_step_controls(session)
    _render_sidebar(session, session.get_quote_breakdown())


if __name__ == "__main__":
    main()
