import logging
import smtplib
from dataclasses import dataclass
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from enum import Enum

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailType(str, Enum):
    REQUESTED = "requested"
    CONFIRMATION = "confirmation"
    CANCELLATION = "cancellation"
    REMINDER = "reminder"
    ADMIN_NOTIFICATION = "admin-notification"
    CANCELLED_ADMIN = "cancelled-admin"


@dataclass
class AppointmentEmailData:
    appointment_id: int
    recipient_name: str
    recipient_email: str
    pet_name: str
    service_name: str
    scheduled_date: date
    scheduled_time: str  # "HH:MM[:SS]"
    client_phone: str | None = None
    cancelled_by: str | None = None
    reason: str | None = None


@dataclass
class EmailResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


def _send_email_sync(to_email: str, subject: str, html_body: str) -> EmailResult:
    """Send email via SMTP (blocking). Use from background task or a worker thread."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send to %s", to_email)
        return EmailResult(success=False, error="Email sending is not configured")
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    message_id = make_msgid(domain=settings.from_email.split("@")[-1] or None)
    msg["Message-ID"] = message_id
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s (%s)", to_email, subject)
        return EmailResult(success=True, message_id=message_id)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        return EmailResult(success=False, error=f"{type(e).__name__}: {e}")


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _format_date(d: date) -> str:
    return d.strftime("%A, %B %d, %Y")


def _detail_row(label: str, value: str, first: bool = False) -> str:
    margin = "0" if first else "12px 0 0 0"
    return f"""
                    <p style="margin:{margin};font-size:12px;text-transform:uppercase;letter-spacing:0.5px;color:#6b7280;">{label}</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{_html_escape(value)}</p>"""


def _layout(title: str, greeting: str, details: list[tuple[str, str]], closing: str) -> str:
    """Shared HTML shell for every appointment email."""
    logo_html = ""
    if settings.email_logo_url:
        logo_html = f'<img src="{settings.email_logo_url}" alt="{settings.site_name}" width="120" style="display:block;margin-bottom:24px;" />'
    rows = "".join(_detail_row(label, value, first=i == 0) for i, (label, value) in enumerate(details))
    contact = " &nbsp;·&nbsp; ".join(c for c in (settings.contact_email, settings.contact_phone) if c)
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,Oxygen,Ubuntu,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;box-shadow:0 4px 6px rgba(0,0,0,0.05);overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              {logo_html}
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">{title}</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">{greeting}</p>
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:20px 24px;">{rows}
                  </td>
                </tr>
              </table>
              <p style="margin:0 0 8px 0;font-size:14px;color:#374151;">{closing}</p>
              <p style="margin:0;font-size:14px;"><a href="{settings.app_url}" style="color:#7c3aed;">{settings.app_url}</a></p>
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{settings.site_name}</p>
              <p style="margin:0;font-size:13px;color:#6b7280;">{contact}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _appointment_details(data: AppointmentEmailData) -> list[tuple[str, str]]:
    return [
        ("Pet", data.pet_name),
        ("Service", data.service_name),
        ("Date", _format_date(data.scheduled_date)),
        ("Time", data.scheduled_time[:5]),
    ]


def build_appointment_requested_html(data: AppointmentEmailData) -> str:
    name = _html_escape(data.recipient_name or "there")
    return _layout(
        "Appointment Requested",
        f"Hi {name}, we received your request. We will confirm it shortly.",
        _appointment_details(data),
        "You will get another email as soon as the appointment is confirmed.",
    )


def build_appointment_confirmation_html(data: AppointmentEmailData) -> str:
    name = _html_escape(data.recipient_name or "there")
    return _layout(
        "Appointment Confirmed",
        f"Hi {name}, your appointment is confirmed.",
        _appointment_details(data),
        "If you need to reschedule or cancel, please contact us.",
    )


def build_appointment_cancellation_html(data: AppointmentEmailData) -> str:
    name = _html_escape(data.recipient_name or "there")
    details = _appointment_details(data)
    if data.reason:
        details.append(("Reason", data.reason))
    who = "at your request" if data.cancelled_by == "client" else "by our team"
    return _layout(
        "Appointment Cancelled",
        f"Hi {name}, your appointment was cancelled {who}.",
        details,
        "You can book a new time whenever you like.",
    )


def build_appointment_reminder_html(data: AppointmentEmailData) -> str:
    name = _html_escape(data.recipient_name or "there")
    return _layout(
        "Appointment Tomorrow",
        f"Hi {name}, this is a reminder of your appointment tomorrow.",
        _appointment_details(data),
        "See you soon!",
    )


def build_admin_notification_html(data: AppointmentEmailData) -> str:
    details = [("Client", data.recipient_name), ("Email", data.recipient_email)]
    if data.client_phone:
        details.append(("Phone", data.client_phone))
    return _layout(
        "New Appointment Request",
        "A client requested a new appointment.",
        details + _appointment_details(data),
        "Open the admin calendar to confirm or cancel it.",
    )


def build_cancelled_admin_html(data: AppointmentEmailData) -> str:
    details = [("Client", data.recipient_name), ("Email", data.recipient_email)]
    if data.reason:
        details.append(("Reason", data.reason))
    return _layout(
        "Appointment Cancelled",
        f"An appointment was cancelled by the {data.cancelled_by or 'client'}.",
        details + _appointment_details(data),
        "The slot is free again in the calendar.",
    )


_TEMPLATES = {
    EmailType.REQUESTED: (lambda d: f"Appointment Requested - {d.pet_name}", build_appointment_requested_html),
    EmailType.CONFIRMATION: (lambda d: f"Appointment Confirmed - {d.pet_name}", build_appointment_confirmation_html),
    EmailType.CANCELLATION: (lambda d: f"Appointment Cancelled - {d.pet_name}", build_appointment_cancellation_html),
    EmailType.REMINDER: (lambda d: f"Reminder: appointment tomorrow - {d.pet_name}", build_appointment_reminder_html),
    EmailType.ADMIN_NOTIFICATION: (
        lambda d: f"New Appointment - {d.pet_name} ({d.recipient_name})",
        build_admin_notification_html,
    ),
    EmailType.CANCELLED_ADMIN: (
        lambda d: f"Appointment Cancelled - {d.pet_name} ({d.recipient_name})",
        build_cancelled_admin_html,
    ),
}

_ADMIN_TYPES = {EmailType.ADMIN_NOTIFICATION, EmailType.CANCELLED_ADMIN}


def send_appointment_email(email_type: EmailType, data: AppointmentEmailData) -> EmailResult:
    """Compose and send one appointment email (blocking; call from a background task or thread).

    Admin-facing types go to the configured admin address; the rest go to the client.
    """
    if email_type in _ADMIN_TYPES:
        to_email = settings.notification_admin_email
    else:
        to_email = data.recipient_email
    if not to_email:
        logger.warning("No recipient for %s email (appointment %s)", email_type.value, data.appointment_id)
        return EmailResult(success=False, error="No recipient email")
    subject_for, build_html = _TEMPLATES[email_type]
    subject = f"{settings.site_name} – {subject_for(data)}"
    return _send_email_sync(to_email, subject, build_html(data))
