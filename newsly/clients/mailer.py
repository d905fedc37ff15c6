"""SMTP email delivery for newsletters and replies."""

import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from socket import error as socket_error
from typing import Optional

from bs4 import BeautifulSoup

from newsly.models.settings import Settings

logger = logging.getLogger(__name__)


def strip_html(html_content: str) -> str:
    """Convert HTML to plain text."""
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")
    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text()
    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


class Mailer:
    """Sends HTML email over SMTP with STARTTLS."""

    def __init__(self, settings: Settings):
        """Initialize the mailer.

        Args:
            settings: Settings instance with SMTP host and credentials
        """
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.timeout = settings.smtp_timeout
        self.user = settings.email_user
        self.password = settings.email_password
        self.sender = settings.email_from
        self.configured = settings.email_configured

    def build_message(
        self,
        to: str,
        subject: str,
        html: str,
        in_reply_to: Optional[str] = None,
    ) -> MIMEMultipart:
        """Build a multipart message with plain text and HTML parts."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr(("Newsly", self.sender or ""))
        msg["To"] = to
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain="newsly")
        if in_reply_to:
            msg["In-Reply-To"] = in_reply_to
            msg["References"] = in_reply_to

        msg.attach(MIMEText(strip_html(html), "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _send(self, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.starttls(context=context)
            server.login(self.user, self.password)
            server.send_message(msg)

    async def send(
        self,
        to: str,
        subject: str,
        html: str,
        in_reply_to: Optional[str] = None,
    ) -> bool:
        """Send an email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            in_reply_to: Message-ID being answered, for threading

        Returns:
            True if the message was handed to the SMTP server, False if
            email is not configured or delivery failed
        """
        if not self.configured:
            logger.warning(
                f"Email configuration missing, not sending '{subject}' to {to}"
            )
            return False

        msg = self.build_message(to, subject, html, in_reply_to=in_reply_to)
        try:
            await asyncio.to_thread(self._send, msg)
        except (socket_error, smtplib.SMTPException) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"Email sent to {to}: {subject}")
        return True
