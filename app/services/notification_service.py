from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass, field
from typing import Protocol

from app.core.scoring import get_scoring_value
from app.integrations.email import build_message

logger = logging.getLogger(__name__)

DEFAULT_HR_SCORE_THRESHOLD = 80


def hr_score_threshold() -> int:
    try:
        return int(get_scoring_value("notifications.hr_score_threshold", DEFAULT_HR_SCORE_THRESHOLD))
    except (RuntimeError, OSError) as exc:
        logger.warning("scoring_config_unavailable key=notifications.hr_score_threshold: %s", exc)
    except (TypeError, ValueError):
        pass
    return DEFAULT_HR_SCORE_THRESHOLD


def header_text(value: str | None) -> str:
    """Collapse line breaks and runs of whitespace so the value is safe in a mail header."""
    return " ".join((value or "").split())


class Mailer(Protocol):
    @property
    def configured(self) -> bool: ...

    @property
    def sender(self) -> str: ...

    def send(self, msg) -> None: ...


@dataclass(frozen=True)
class HRAlert:
    hr_email: str
    candidate_name: str
    candidate_email: str
    job_id: str
    job_title: str
    match_score: int
    resume_url: str
    key_highlights: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CandidateAck:
    candidate_email: str
    candidate_name: str
    job_title: str
    company_name: str


@dataclass(frozen=True)
class NotificationResult:
    sent: bool
    reason: str | None = None


def render_hr_text(alert: HRAlert) -> str:
    lines = [
        "HIGH-SCORING CANDIDATE ALERT",
        "============================",
        "",
        f"Match Score: {alert.match_score}/100",
        "",
        "CANDIDATE INFORMATION",
        "---------------------",
        f"Name: {alert.candidate_name}",
        f"Email: {alert.candidate_email or 'Not provided'}",
        f"Job: {alert.job_title} ({alert.job_id})",
        f"Resume URL: {alert.resume_url}",
    ]
    if alert.key_highlights:
        lines += ["", "KEY HIGHLIGHTS", "--------------"]
        lines += [f"{i}. {item}" for i, item in enumerate(alert.key_highlights, start=1)]
    lines += [
        "",
        "NEXT STEPS",
        "----------",
        "Review the candidate's resume and consider scheduling an interview.",
        f"Contact: {alert.candidate_email or 'Not provided'}",
        "",
        "---",
        "This is an automated notification from the ATS Score Engine.",
        "Please review the candidate's full resume before making hiring decisions.",
    ]
    return "\n".join(lines)


def render_hr_html(alert: HRAlert) -> str:
    esc = html.escape
    highlights = ""
    if alert.key_highlights:
        items = "".join(f"<li>{esc(item)}</li>" for item in alert.key_highlights)
        highlights = f"<h3>Key Highlights</h3><ul>{items}</ul>"
    return (
        "<html><body style=\"font-family: Arial, sans-serif; color: #333;\">"
        "<h2>High-Scoring Candidate Alert</h2>"
        f"<p><strong>Match Score: {alert.match_score}/100</strong></p>"
        "<h3>Candidate Information</h3>"
        f"<p>Name: {esc(alert.candidate_name)}<br>"
        f"Email: {esc(alert.candidate_email or 'Not provided')}<br>"
        f"Job: {esc(alert.job_title)} ({esc(alert.job_id)})<br>"
        f"Resume: <a href=\"{esc(alert.resume_url, quote=True)}\">View Resume</a></p>"
        f"{highlights}"
        "<h3>Next Steps</h3>"
        "<p>Review the candidate's resume and consider scheduling an interview.</p>"
        f"<p style=\"font-size: 12px; color: #666;\">Sent to {esc(alert.hr_email)} by the ATS Score Engine.</p>"
        "</body></html>"
    )


def render_candidate_text(ack: CandidateAck) -> str:
    company = f" at {ack.company_name}" if ack.company_name else ""
    return (
        f"Dear {ack.candidate_name or 'Candidate'},\n\n"
        f"We have received your application for {ack.job_title}{company}.\n\n"
        "Your resume has been successfully processed and will be reviewed by our hiring team.\n\n"
        "We will contact you if your qualifications match our requirements.\n\n"
        "Best regards,\nThe Hiring Team\n"
    )


def render_candidate_html(ack: CandidateAck) -> str:
    esc = html.escape
    company = f" at <strong>{esc(ack.company_name)}</strong>" if ack.company_name else ""
    return (
        "<h2>Thank You for Your Application!</h2>"
        f"<p>Dear {esc(ack.candidate_name or 'Candidate')},</p>"
        f"<p>We have received your application for <strong>{esc(ack.job_title)}</strong>{company}.</p>"
        "<p>Your resume has been successfully processed and will be reviewed by our hiring team.</p>"
        "<p>We will contact you if your qualifications match our requirements.</p>"
        "<p>Best regards,<br>The Hiring Team</p>"
    )


class NotificationDispatcher:
    """Sends HR alerts and candidate acknowledgements. Never raises."""

    def __init__(self, mailer: Mailer):
        self._mailer = mailer

    async def _deliver(self, *, to: str, subject: str, text: str, html_body: str, kind: str) -> NotificationResult:
        if not self._mailer.configured:
            logger.info("notification_skipped kind=%s reason=mailer_not_configured", kind)
            return NotificationResult(sent=False, reason="mailer not configured")

        try:
            msg = build_message(
                sender=self._mailer.sender,
                to=header_text(to),
                subject=header_text(subject),
                text=text,
                html=html_body,
            )
            await asyncio.to_thread(self._mailer.send, msg)
        except Exception as exc:  # noqa: BLE001 - notification failures never fail the application
            logger.warning("notification_failed kind=%s to=%s: %s", kind, to, exc)
            return NotificationResult(sent=False, reason=str(exc) or exc.__class__.__name__)

        logger.info("notification_sent kind=%s to=%s", kind, to)
        return NotificationResult(sent=True)

    async def notify_hr(self, alert: HRAlert) -> NotificationResult:
        if not alert.hr_email:
            logger.warning("notification_skipped kind=hr reason=no_hr_email job_id=%s", alert.job_id)
            return NotificationResult(sent=False, reason="HR email not provided")
        return await self._deliver(
            to=alert.hr_email,
            subject=f"High-Scoring Candidate Alert: {alert.candidate_name} (Score: {alert.match_score})",
            text=render_hr_text(alert),
            html_body=render_hr_html(alert),
            kind="hr",
        )

    async def notify_candidate(self, ack: CandidateAck) -> NotificationResult:
        if not ack.candidate_email:
            logger.warning("notification_skipped kind=candidate reason=no_candidate_email")
            return NotificationResult(sent=False, reason="No candidate email")
        return await self._deliver(
            to=ack.candidate_email,
            subject="Application Received - Thank You!",
            text=render_candidate_text(ack),
            html_body=render_candidate_html(ack),
            kind="candidate",
        )
