"""
Email hand-off for notifications.

The intended recipient is always logged; a message is only sent when SMTP
credentials are configured.
"""
import logging
from email.mime.text import MIMEText

import aiosmtplib

from pingwatch.config import get_settings

logger = logging.getLogger("pingwatch.mailer")
settings = get_settings()


def build_message(recipient: str, payload: dict) -> MIMEText:
    check = payload["check"]
    status = check["status"].upper()

    text_body = (
        f"Check '{check['name']}' is now {status}.\n\n"
        f"Ping URL: {check['url']}\n"
        f"Integration: {payload['integration']['name']}\n"
        f"Time: {payload['timestamp']}\n\n"
        f"-- PingWatch"
    )

    msg = MIMEText(text_body, "plain")
    msg["Subject"] = f"[PingWatch] {check['name']} is {status}"
    msg["From"] = settings.smtp_from_email
    msg["To"] = recipient
    return msg


class Mailer:
    async def send(self, recipient: str, payload: dict) -> None:
        check = payload["check"]
        logger.info(
            f"EMAIL -> {recipient}: {check['name']} is {check['status'].upper()}"
        )

        if not (settings.smtp_username and settings.smtp_password):
            return

        await aiosmtplib.send(
            build_message(recipient, payload),
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
        logger.info(f"Email notification sent to {recipient}")
