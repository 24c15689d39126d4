from __future__ import annotations

import json
import unittest

import httpx

from lead_submission import (
    SubmissionError,
    build_submission_payload,
    is_phone_valid,
    missing_fields_message,
    post_lead_submission,
    render_summary_html,
    render_summary_text,
    source_host_from,
    validate_before_submit,
)
from quote_engine import aggregate
from sample_widgets import load_sample_moving_widget
from selection_state import SelectionState


def _payload(**kwargs):
    config = load_sample_moving_widget()
    selections = SelectionState(
        answers={"project-scope": "Studio", "origin-challenges": "8"},
        form_data={"contact-name": "Dana <Tester>", "contact-phone": "404-555-0100"},
    )
    return build_submission_payload(
        widget_id=config.widget_id, selections=selections, breakdown=aggregate(config, selections), **kwargs
    )


class TestValidation(unittest.TestCase):
    def test_missing_everything(self) -> None:
        self.assertEqual(validate_before_submit({}), ["phone number", "starting address"])

    def test_phone_needs_ten_digits(self) -> None:
        self.assertFalse(is_phone_valid("555-0100"))
        self.assertTrue(is_phone_valid("(404) 555-0100"))
        self.assertEqual(validate_before_submit({"phone": "404 555 010", "origin": "Atlanta"}), ["phone number"])

    def test_origin_address_fallback(self) -> None:
        self.assertEqual(validate_before_submit({"contact-phone": "4045550100"}, origin_address="Atlanta"), [])

    def test_message(self) -> None:
        self.assertEqual(
            missing_fields_message(["phone number", "starting address"]),
            "Please provide your phone number and starting address before submitting.",
        )


class TestPayload(unittest.TestCase):
    def test_payload_shape(self) -> None:
        payload = _payload()
        self.assertEqual(payload["widget_key"], "wgt_atlanta_moving_demo")
        self.assertNotIn("source_host", payload)
        self.assertEqual(payload["data"]["project-scope"], "Studio")
        self.assertEqual(payload["summary"]["total"], 710.0)
        self.assertEqual(_payload(source_host="example.com")["source_host"], "example.com")

    def test_source_host_from(self) -> None:
        self.assertEqual(source_host_from(None, "https://WWW.Example.com/quote?x=1"), "www.example.com")
        self.assertEqual(source_host_from("movers.test"), "movers.test")
        self.assertIsNone(source_host_from(None, ""))

    def test_html_summary_escapes(self) -> None:
        html = render_summary_html(_payload())
        self.assertIn("<li><strong>Studio:</strong> $350.00</li>", html)
        self.assertIn("<strong>Estimated total:</strong> $710.00", html)
        self.assertIn("Dana &lt;Tester&gt;", html)
        self.assertNotIn("Minimum job price applied", html)

    def test_text_summary(self) -> None:
        text = render_summary_text(_payload(), company_name="Atlanta Moving Company")
        self.assertTrue(text.startswith("Atlanta Moving Company - Estimate"))
        self.assertIn("- Stairs (flights): $360.00", text)
        self.assertIn("Estimated total: $710.00", text)


class TestPost(unittest.TestCase):
    def test_post_success(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"success": True, "lead_id": 17})

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            resp = post_lead_submission(url="https://leads.test/api/submit", payload=_payload(), client=client)
        self.assertEqual(resp, {"success": True, "lead_id": 17})
        self.assertEqual(seen["body"]["widget_key"], "wgt_atlanta_moving_demo")
        self.assertEqual(seen["body"]["summary"]["total"], 710.0)

    def test_post_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(SubmissionError) as ctx:
                post_lead_submission(url="https://leads.test/api/submit", payload=_payload(), client=client)
        self.assertIn("HTTP 500", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
