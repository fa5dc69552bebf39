"""Transactional emails sent through the Resend API."""

from __future__ import annotations

import hashlib
import logging
from datetime import UTC, datetime
from html import escape

import httpx

from nskai.config.settings import get_settings


_BRAND_NAME = "NSKAI"
_PRIMARY_COLOR = "#000000"
_FOOTER_TAGLINE = "NSKAI EdTech - Learn. Build. Grow."
_RESEND_SEND_EMAILS_URL = "https://api.resend.com/emails"

logger = logging.getLogger(__name__)


def _render_email_layout(*, preheader: str, title: str, body_html: str) -> str:
    year = datetime.now(UTC).year
    safe_preheader = escape(preheader)
    safe_title = escape(title)

    return f"""\
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{safe_title}</title>
  </head>
  <body style="margin:0; padding:0; background-color:#f4f4f5; font-family:-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <span style="display:none; visibility:hidden; opacity:0; height:0; width:0; overflow:hidden;">
      {safe_preheader}
    </span>
    <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="border-collapse:collapse; width:100%;">
      <tr>
        <td align="center" style="padding:40px 16px;">
          <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="border-collapse:collapse; max-width:560px; background-color:#ffffff; border-radius:12px; overflow:hidden;">
            <tr>
              <td style="padding:24px 24px 0 24px;">
                <div style="font-size:14px; font-weight:700; color:{_PRIMARY_COLOR};">{_BRAND_NAME}</div>
                <h1 style="margin:12px 0 0 0; font-size:22px; line-height:1.3; color:#0f172a;">{safe_title}</h1>
              </td>
            </tr>
            <tr>
              <td style="padding:20px 24px 24px 24px;">
                {body_html}
              </td>
            </tr>
            <tr>
              <td style="padding:16px 24px; background-color:#f8fafc; border-top:1px solid #e5e7eb;">
                <div style="font-size:12px; color:#64748b;">{_FOOTER_TAGLINE}</div>
                <div style="margin-top:10px; font-size:12px; color:#94a3b8;">&copy; {year} {_BRAND_NAME}</div>
              </td>
            </tr>
          </table>
        </td>
      </tr>
    </table>
  </body>
</html>
"""


def _render_button(*, url: str, text: str) -> str:
    safe_url = url.replace("'", "%27")
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" style="border-collapse:collapse; margin:18px 0 14px 0;">
  <tr>
    <td align="center" style="border-radius:8px;" bgcolor="{_PRIMARY_COLOR}">
      <a href="{safe_url}" style="display:inline-block; padding:12px 20px; font-size:14px; font-weight:700; color:#ffffff; text-decoration:none;">
        {escape(text)}
      </a>
    </td>
  </tr>
</table>
"""


def _paragraph(text: str) -> str:
    return f'<p style="margin:0 0 12px 0; font-size:14px; line-height:1.6; color:#475569;">{escape(text)}</p>'


def _build_idempotency_key(*, purpose: str, email: str, token: str) -> str:
    material = f"{purpose}:{email}:{token}"
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()[:24]
    return f"{purpose}/{digest}"


def format_naira(amount_kobo: int) -> str:
    """Format an amount in kobo as Naira, or ``Free`` for zero."""
    if amount_kobo == 0:
        return "Free"
    naira = amount_kobo / 100
    return f"\N{NAIRA SIGN}{naira:,.0f}" if naira == int(naira) else f"\N{NAIRA SIGN}{naira:,.2f}"


async def send_email(
    *,
    email_to: str,
    subject: str,
    html_content: str,
    idempotency_key: str | None = None,
) -> None:
    """Send an email through the Resend API when configured; otherwise do nothing."""
    settings = get_settings()
    resend_api_key = settings.RESEND_API_KEY.get_secret_value()
    if not resend_api_key or not settings.EMAILS_FROM_EMAIL:
        logger.debug("Resend not configured; skipping email %r", subject)
        return

    from_email = settings.EMAILS_FROM_EMAIL
    if settings.EMAILS_FROM_NAME:
        from_email = f"{settings.EMAILS_FROM_NAME} <{settings.EMAILS_FROM_EMAIL}>"

    headers: dict[str, str] = {
        "Authorization": f"Bearer {resend_api_key}",
        "Content-Type": "application/json",
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key

    payload = {
        "from": from_email,
        "to": [email_to],
        "subject": subject,
        "html": html_content,
    }

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(_RESEND_SEND_EMAILS_URL, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("[EMAIL] Send failed via Resend API")
        raise

    email_id = data.get("id") if isinstance(data, dict) else None
    logger.info(f'[EMAIL] Sent "{subject}"', extra={"resend_email_id": email_id, "email_to": email_to})


class ResendNotifier:
    """Default ``Notifier``: renders the templates and sends them via Resend."""

    async def send_tutor_approved(self, *, email: str, name: str) -> None:
        settings = get_settings()
        link = f"{settings.APP_URL.rstrip('/')}/tutor/courses"
        body = (
            _paragraph(f"Congratulations, {name}! Your tutor application has been reviewed and approved.")
            + _paragraph("You can now create and publish courses on the platform.")
            + _paragraph(
                "Head to your Tutor Dashboard, create your first course, add chapters and lessons, "
                "then submit it for review."
            )
            + _render_button(url=link, text="Start Creating Courses")
        )
        await send_email(
            email_to=email,
            subject="Your tutor application has been approved",
            html_content=_render_email_layout(
                preheader=f"Your tutor application has been approved, {name}!",
                title="You're approved!",
                body_html=body,
            ),
            idempotency_key=_build_idempotency_key(purpose="tutor-approved", email=email, token=name),
        )

    async def send_purchase_confirmation(
        self, *, email: str, name: str, course_title: str, amount: int, course_id: str
    ) -> None:
        settings = get_settings()
        is_free = amount == 0
        link = f"{settings.APP_URL.rstrip('/')}/watch/{course_id}"
        intro = (
            f"Hey {name}, you've successfully enrolled in a free course!"
            if is_free
            else f"Hey {name}, your payment has been processed and verified."
        )
        body = (
            _paragraph(intro)
            + _paragraph(f"Course: {course_title}")
            + _paragraph(f"Amount: {format_naira(amount)}")
            + _paragraph("You now have full lifetime access to all lessons, quizzes, and course materials.")
            + _render_button(url=link, text="Start Learning Now")
        )
        subject = f"You're enrolled in {course_title}!" if is_free else f"Payment confirmed for {course_title}"
        await send_email(
            email_to=email,
            subject=subject,
            html_content=_render_email_layout(
                preheader=subject,
                title="You're enrolled!" if is_free else "Payment confirmed",
                body_html=body,
            ),
            idempotency_key=_build_idempotency_key(purpose="purchase", email=email, token=course_id),
        )

    async def send_welcome(self, *, email: str, name: str, role: str) -> None:
        settings = get_settings()
        path = "/tutor" if role == "TUTOR" else "/learner"
        message = (
            "We are excited to have you on board. Your application is currently under review."
            if role == "TUTOR"
            else "We are excited to have you on board. Your learning journey starts now."
        )
        body = _paragraph(message) + _render_button(url=f"{settings.APP_URL.rstrip('/')}{path}", text="Go to Dashboard")
        await send_email(
            email_to=email,
            subject="Welcome to NSKAI",
            html_content=_render_email_layout(
                preheader="Welcome to NSKAI",
                title=f"Welcome to NSKAI Ed-tech, {name}!",
                body_html=body,
            ),
        )
