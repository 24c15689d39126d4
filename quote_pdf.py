from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from quote_engine import QuoteBreakdown


@dataclass(frozen=True)
class QuotePdfLineItem:
    description: str
    amount_cents: int
    detail: str = ""
    units: int = 1


@dataclass(frozen=True)
class QuotePdfTotals:
    subtotal_cents: int
    total_cents: int
    minimum_job_price_cents: int = 0
    applied_minimum: bool = False


@dataclass(frozen=True)
class QuotePdfArtifact:
    quote_id: str
    quote_date: date
    company_name: str
    widget_id: str
    customer_name: str
    customer_phone: str
    line_items: Tuple[QuotePdfLineItem, ...]
    totals: QuotePdfTotals
    origin_address: str = ""
    destination_address: str = ""
    currency_symbol: str = "$"
    notes: Tuple[str, ...] = ()
    logo_png_bytes: Optional[bytes] = None


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def format_money(amount_cents: int, symbol: str = "$") -> str:
    """
    Format a currency amount from integer cents.
    """
    if not isinstance(amount_cents, int):
        raise TypeError(f"amount_cents must be int (got {type(amount_cents).__name__})")
    sign = "-" if amount_cents < 0 else ""
    return f"{sign}{symbol}{abs(amount_cents) / 100.0:,.2f}"


def artifact_from_breakdown(
    breakdown: QuoteBreakdown,
    *,
    quote_id: str,
    quote_date: date,
    company_name: str,
    widget_id: str,
    customer_name: str = "",
    customer_phone: str = "",
    origin_address: str = "",
    destination_address: str = "",
    notes: Tuple[str, ...] = (),
    logo_png_bytes: Optional[bytes] = None,
) -> QuotePdfArtifact:
    items = tuple(
        QuotePdfLineItem(
            description=li.label,
            amount_cents=to_cents(li.amount),
            detail=li.meta or "",
            units=li.units,
        )
        for li in breakdown.items
    )
    return QuotePdfArtifact(
        quote_id=quote_id,
        quote_date=quote_date,
        company_name=company_name,
        widget_id=widget_id,
        customer_name=customer_name,
        customer_phone=customer_phone,
        line_items=items,
        totals=QuotePdfTotals(
            subtotal_cents=to_cents(breakdown.subtotal),
            total_cents=to_cents(breakdown.total),
            minimum_job_price_cents=to_cents(breakdown.minimum_job_price),
            applied_minimum=breakdown.applied_minimum,
        ),
        origin_address=origin_address,
        destination_address=destination_address,
        currency_symbol=breakdown.currency_symbol,
        notes=notes,
        logo_png_bytes=logo_png_bytes,
    )


_ROW_H = 0.27 * inch
_TOTALS_BOX_W = 3.0 * inch
_TOTALS_BOX_H = 1.15 * inch


def make_quote_pdf_bytes(artifact: QuotePdfArtifact) -> bytes:
    """
    Render the quote summary PDF.

    Page 1 carries the header, the customer/move block and the start of the line
    items; long quotes continue on "LINE ITEMS (CONTINUED)" pages. The totals box
    always follows the last row and moves to a fresh page if it would not fit.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    # Uncompressed so tests can find text markers in the bytes.
    c.setPageCompression(0)
    w, h = letter

    margin = 0.6 * inch
    x0 = margin
    y_top = h - margin
    pad = 0.15 * inch
    sym = artifact.currency_symbol

    # Header band
    header_h = 1.2 * inch
    _rect(c, x0, y_top - header_h, w - 2 * margin, header_h, stroke=1, fill=0)

    text_x = x0 + pad
    if artifact.logo_png_bytes:
        try:
            img = ImageReader(BytesIO(artifact.logo_png_bytes))
            c.drawImage(
                img,
                x0 + pad,
                y_top - header_h + pad,
                width=1.2 * inch,
                height=0.9 * inch,
                mask="auto",
                preserveAspectRatio=True,
            )
            text_x = x0 + 1.5 * inch
        except (OSError, ValueError):
            pass

    box_w = 2.2 * inch
    box_x = w - margin - box_w
    c.setFont("Helvetica-Bold", 12)
    _draw_truncated(c, text_x, y_top - 0.42 * inch, artifact.company_name or "Estimate", max_width=box_x - text_x - pad)
    c.setFont("Helvetica", 9)
    _draw_truncated(c, text_x, y_top - 0.64 * inch, f"Widget: {artifact.widget_id}", max_width=box_x - text_x - pad)

    box_y = y_top - header_h + pad
    box_h = header_h - 2 * pad
    _rect(c, box_x, box_y, box_w, box_h, stroke=1, fill=0)
    t_y = box_y + box_h - 0.26 * inch
    c.setFont("Helvetica-Bold", 10)
    c.drawString(box_x + pad, t_y, "Quote Estimate")
    t_y -= 0.21 * inch
    c.drawString(box_x + pad, t_y, f"EST-{artifact.quote_id}")
    c.setFont("Helvetica", 9)
    t_y -= 0.21 * inch
    c.drawString(box_x + pad, t_y, f"Date: {artifact.quote_date.isoformat()}")
    c.setFont("Helvetica-Bold", 11)
    t_y -= 0.23 * inch
    c.drawString(box_x + pad, t_y, f"Total: {format_money(artifact.totals.total_cents, sym)}")

    # Customer + move block
    y = y_top - header_h - 0.25 * inch
    block_h = 1.1 * inch
    half_w = (w - 2 * margin - 0.15 * inch) / 2.0
    _rect(c, x0, y - block_h, half_w, block_h, stroke=1, fill=0)
    right_x = x0 + half_w + 0.15 * inch
    _rect(c, right_x, y - block_h, half_w, block_h, stroke=1, fill=0)

    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0 + pad, y - 0.25 * inch, "CUSTOMER DETAILS")
    c.drawString(right_x + pad, y - 0.25 * inch, "ROUTE")
    c.setFont("Helvetica", 9)
    _draw_truncated(c, x0 + pad, y - 0.52 * inch, artifact.customer_name or "-", max_width=half_w - 2 * pad)
    _draw_truncated(c, x0 + pad, y - 0.72 * inch, artifact.customer_phone or "-", max_width=half_w - 2 * pad)
    _draw_truncated(
        c, right_x + pad, y - 0.52 * inch, f"From: {artifact.origin_address or '-'}", max_width=half_w - 2 * pad
    )
    _draw_truncated(
        c, right_x + pad, y - 0.72 * inch, f"To: {artifact.destination_address or '-'}", max_width=half_w - 2 * pad
    )

    footer_base_y = margin + 0.35 * inch
    bottom_y = footer_base_y + 0.2 * inch + min(3, len(artifact.notes)) * 0.12 * inch

    # Line items, paginated
    row_y = _draw_table_header(c, x0=x0, margin=margin, pad=pad, page_w=w, top_y=y - block_h - 0.25 * inch)
    desc_max_w = (w - 2 * margin) - 2.6 * inch
    for li in artifact.line_items:
        if row_y < bottom_y:
            c.showPage()
            c.setFont("Helvetica-Bold", 10)
            c.drawString(x0, h - margin - 0.25 * inch, "LINE ITEMS (CONTINUED)")
            row_y = _draw_table_header(c, x0=x0, margin=margin, pad=pad, page_w=w, top_y=h - margin - 0.45 * inch)
        c.setFont("Helvetica", 9)
        _draw_truncated(c, x0 + pad, row_y, li.description, max_width=desc_max_w)
        if li.detail:
            c.setFillColor(colors.grey)
            c.setFont("Helvetica", 7)
            _draw_truncated(c, w - margin - 2.45 * inch, row_y, li.detail, max_width=1.0 * inch)
            c.setFillColor(colors.black)
            c.setFont("Helvetica", 9)
        c.drawRightString(w - margin - 1.3 * inch, row_y, str(max(0, int(li.units))))
        c.drawRightString(w - margin - pad, row_y, format_money(li.amount_cents, sym))
        row_y -= _ROW_H

    if not artifact.line_items:
        c.setFont("Helvetica-Oblique", 9)
        c.drawString(x0 + pad, row_y, "No priced selections yet.")
        row_y -= _ROW_H

    # Totals box below the last row
    box_top = row_y - 0.1 * inch
    if box_top - _TOTALS_BOX_H < bottom_y:
        c.showPage()
        box_top = h - margin - 0.25 * inch
    _draw_totals_box(c, artifact, x=w - margin - _TOTALS_BOX_W, top_y=box_top)

    # Notes + footer
    c.setFont("Helvetica", 8)
    c.setFillColor(colors.grey)
    c.drawString(x0, footer_base_y, "Estimate only. Final pricing is confirmed after review.")
    c.setFillColor(colors.black)
    note_y = footer_base_y + 0.15 * inch
    for n in artifact.notes[:3]:
        c.drawString(x0, note_y, f"Note: {n}")
        note_y += 0.12 * inch

    c.showPage()
    c.save()
    return buf.getvalue()


def _draw_table_header(c: canvas.Canvas, *, x0: float, margin: float, pad: float, page_w: float, top_y: float) -> float:
    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0 + pad, top_y - 0.25 * inch, "DESCRIPTION")
    c.drawRightString(page_w - margin - 1.3 * inch, top_y - 0.25 * inch, "UNITS")
    c.drawRightString(page_w - margin - pad, top_y - 0.25 * inch, "AMOUNT")
    _hline(c, x0, page_w - margin, top_y - 0.35 * inch)
    return top_y - 0.55 * inch


def _draw_totals_box(c: canvas.Canvas, artifact: QuotePdfArtifact, *, x: float, top_y: float) -> None:
    sym = artifact.currency_symbol
    totals = artifact.totals
    _rect(c, x, top_y - _TOTALS_BOX_H, _TOTALS_BOX_W, _TOTALS_BOX_H, stroke=1, fill=0)
    y = top_y - 0.28 * inch
    c.setFont("Helvetica", 9)
    _totals_row(c, x, y, "Subtotal", format_money(totals.subtotal_cents, sym))
    y -= 0.2 * inch
    if totals.applied_minimum:
        _totals_row(c, x, y, "Minimum Job Price Applied", format_money(totals.minimum_job_price_cents, sym))
    elif totals.minimum_job_price_cents > 0:
        _totals_row(c, x, y, "Minimum Job Price", format_money(totals.minimum_job_price_cents, sym))
    y -= 0.3 * inch

    band_h = 0.26 * inch
    c.setFillColor(colors.black)
    c.rect(x, y - 0.08 * inch, _TOTALS_BOX_W, band_h, stroke=0, fill=1)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 10)
    _totals_row(c, x, y, "Estimated Total", format_money(totals.total_cents, sym))
    c.setFillColor(colors.black)


def _rect(c: canvas.Canvas, x: float, y: float, w: float, h: float, *, stroke: int, fill: int) -> None:
    c.rect(x, y, w, h, stroke=stroke, fill=fill)


def _hline(c: canvas.Canvas, x1: float, x2: float, y: float) -> None:
    c.line(x1, y, x2, y)


def _totals_row(c: canvas.Canvas, x: float, y: float, label: str, amount_txt: str) -> None:
    # Label is truncated so it never runs into the right-aligned amount.
    left_pad = 0.12 * inch
    right_pad = 0.12 * inch
    label_max = _TOTALS_BOX_W - left_pad - right_pad - c.stringWidth(amount_txt) - 0.1 * inch
    _draw_truncated(c, x + left_pad, y, label, max_width=max(0.0, label_max))
    c.drawRightString(x + _TOTALS_BOX_W - right_pad, y, amount_txt)


def _draw_truncated(c: canvas.Canvas, x: float, y: float, text: str, *, max_width: float) -> None:
    """
    Draw text, cut back with an ASCII ellipsis until it fits `max_width`.
    """
    t = (text or "").strip()
    if not t or max_width <= 0:
        return
    if c.stringWidth(t) <= max_width:
        c.drawString(x, y, t)
        return
    lo, hi = 0, len(t)
    best = ""
    while lo <= hi:
        mid = (lo + hi) // 2
        cand = t[:mid].rstrip() + "..."
        if c.stringWidth(cand) <= max_width:
            best = cand
            lo = mid + 1
        else:
            hi = mid - 1
    if best:
        c.drawString(x, y, best)
