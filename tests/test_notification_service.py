import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.scoring import clear_scoring_config_cache  # noqa: E402
from app.integrations.email import MailDeliveryError  # noqa: E402
from app.services.notification_service import (  # noqa: E402
    CandidateAck,
    HRAlert,
    NotificationDispatcher,
    header_text,
    hr_score_threshold,
)


class FakeMailer:
    def __init__(self, *, configured=True, error=None):
        self._configured = configured
        self.error = error
        self.sent = []

    @property
    def configured(self):
        return self._configured

    @property
    def sender(self):
        return "ats@example.com"

    def send(self, msg):
        if self.error is not None:
            raise self.error
        self.sent.append(msg)


def _alert(**overrides):
    values = dict(
        hr_email="hr@example.com",
        candidate_name="Jane <Doe>",
        candidate_email="jane@example.com",
        job_id="JOB-1700000000000-ABC1234",
        job_title="Backend Engineer",
        match_score=91,
        resume_url="https://files.example.com/cv.pdf",
        key_highlights=["Led payments migration"],
    )
    values.update(overrides)
    return HRAlert(**values)


def _ack(**overrides):
    values = dict(
        candidate_email="jane@example.com",
        candidate_name="Jane Doe",
        job_title="Backend Engineer",
        company_name="Acme",
    )
    values.update(overrides)
    return CandidateAck(**values)


class NotificationDispatcherTests(unittest.IsolatedAsyncioTestCase):
    async def test_hr_alert_subject_and_bodies(self):
        mailer = FakeMailer()
        result = await NotificationDispatcher(mailer).notify_hr(_alert())

        self.assertTrue(result.sent)
        self.assertIsNone(result.reason)
        msg = mailer.sent[0]
        self.assertEqual(msg["Subject"], "High-Scoring Candidate Alert: Jane <Doe> (Score: 91)")
        self.assertEqual(msg["To"], "hr@example.com")
        text = msg.get_body(preferencelist=("plain",)).get_content()
        html = msg.get_body(preferencelist=("html",)).get_content()
        self.assertIn("Match Score: 91/100", text)
        self.assertIn("1. Led payments migration", text)
        self.assertIn("https://files.example.com/cv.pdf", text)
        self.assertIn("Jane &lt;Doe&gt;", html)

    async def test_missing_hr_email_is_not_sent(self):
        mailer = FakeMailer()
        result = await NotificationDispatcher(mailer).notify_hr(_alert(hr_email=""))
        self.assertFalse(result.sent)
        self.assertEqual(result.reason, "HR email not provided")
        self.assertEqual(mailer.sent, [])

    async def test_missing_candidate_email_is_not_sent(self):
        result = await NotificationDispatcher(FakeMailer()).notify_candidate(_ack(candidate_email=""))
        self.assertFalse(result.sent)
        self.assertEqual(result.reason, "No candidate email")

    async def test_unconfigured_mailer(self):
        result = await NotificationDispatcher(FakeMailer(configured=False)).notify_candidate(_ack())
        self.assertFalse(result.sent)
        self.assertEqual(result.reason, "mailer not configured")

    async def test_delivery_failure_is_reported_not_raised(self):
        mailer = FakeMailer(error=MailDeliveryError("connection refused"))
        result = await NotificationDispatcher(mailer).notify_hr(_alert())
        self.assertFalse(result.sent)
        self.assertEqual(result.reason, "connection refused")

    async def test_candidate_acknowledgement(self):
        mailer = FakeMailer()
        result = await NotificationDispatcher(mailer).notify_candidate(_ack())
        self.assertTrue(result.sent)
        msg = mailer.sent[0]
        self.assertEqual(msg["Subject"], "Application Received - Thank You!")
        self.assertIn("Backend Engineer at Acme", msg.get_body(preferencelist=("plain",)).get_content())

    async def test_line_breaks_in_name_are_flattened_in_subject(self):
        mailer = FakeMailer()
        result = await NotificationDispatcher(mailer).notify_hr(_alert(candidate_name="Jane\r\nDoe\nBcc: x@evil.test"))

        self.assertTrue(result.sent)
        self.assertEqual(
            mailer.sent[0]["Subject"], "High-Scoring Candidate Alert: Jane Doe Bcc: x@evil.test (Score: 91)"
        )
        self.assertIsNone(mailer.sent[0]["Bcc"])

    async def test_message_build_error_is_reported_not_raised(self):
        mailer = FakeMailer()
        with patch("app.services.notification_service.build_message", side_effect=ValueError("bad header")):
            result = await NotificationDispatcher(mailer).notify_candidate(_ack())
        self.assertFalse(result.sent)
        self.assertEqual(result.reason, "bad header")
        self.assertEqual(mailer.sent, [])

    def test_header_text(self):
        self.assertEqual(header_text("  a\n b\r\n\tc "), "a b c")
        self.assertEqual(header_text(None), "")

    def test_threshold_from_config(self):
        self.assertEqual(hr_score_threshold(), 80)

    def test_threshold_defaults_when_config_is_unreadable(self):
        self.addCleanup(clear_scoring_config_cache)
        clear_scoring_config_cache()
        with patch.dict(os.environ, {"SCORING_CONFIG_PATH": "/nonexistent/scoring.yaml"}):
            self.assertEqual(hr_score_threshold(), 80)


if __name__ == "__main__":
    unittest.main()
