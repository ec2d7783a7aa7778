from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .settings import Settings


def send_email(settings: Settings, subject: str, body: str) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - ACS_ENABLE_EMAIL=true
      - ACS_SMTP_HOST / ACS_SMTP_PORT
      - ACS_SMTP_USER / ACS_SMTP_PASSWORD
      - ACS_EMAIL_FROM / ACS_EMAIL_TO
    """
    if not settings.enable_email:
        return False
    if not all(
        [
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
            settings.smtp_password,
            settings.email_from,
            settings.email_to,
        ]
    ):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = settings.email_from
        msg["To"] = settings.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.email_from, [settings.email_to], msg.as_string())
        return True
    except (OSError, smtplib.SMTPException):
        return False
