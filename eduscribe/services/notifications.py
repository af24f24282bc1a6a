"""
Email delivery for homework notifications.

MailerSend is called through its HTTP API. When mail is not configured the
NullEmailSender only logs, so the rest of the pipeline behaves the same.
"""

from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from dataclasses import dataclass
import logging

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

HOMEWORK_SUBJECT = "Your new homework is ready (ID: {hw_id})"


class NotificationError(Exception):
    """Raised when the email provider rejects or fails a delivery."""
    pass


@dataclass(frozen=True)
class EmailNotification:
    to_address: str
    to_name: Optional[str]
    subject: str
    text: str
    html: str


class MailerSendEmailSender:
    """MailerSend-backed sender."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: Optional[str] = None,
        base_url: str = "https://api.mailersend.com/v1",
        timeout: float = 30.0
    ):
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def send(self, notification: EmailNotification) -> Dict[str, Optional[str]]:
        """
        Send one email and return provider identifiers.

        Raises:
            NotificationError: On network failure or a non-2xx response
        """
        sender: Dict[str, str] = {"email": self.from_address}
        if self.from_name:
            sender["name"] = self.from_name

        recipient: Dict[str, str] = {"email": notification.to_address}
        if notification.to_name:
            recipient["name"] = notification.to_name

        payload = {
            "from": sender,
            "to": [recipient],
            "subject": notification.subject,
            "text": notification.text,
            "html": notification.html
        }

        try:
            response = requests.post(
                f"{self.base_url}/email",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "application/json"
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"MailerSend request failed: {e}")
            raise NotificationError(f"MailerSend request failed: {e}") from e

        if response.status_code >= 300:
            logger.error(f"MailerSend request failed status={response.status_code} body={response.text[:500]}")
            raise NotificationError(f"MailerSend returned HTTP {response.status_code}")

        return {
            "provider": "mailersend",
            "message_id": response.headers.get("X-Message-Id"),
            "request_id": response.headers.get("X-Request-Id")
        }


class NullEmailSender:
    """No-op sender used when mail is not configured."""

    def send(self, notification: EmailNotification) -> Dict[str, Optional[str]]:
        logger.info(
            f"Email disabled; not sending to={notification.to_address} subject={notification.subject!r}"
        )
        return {"provider": None, "message_id": None, "request_id": None}


class HomeworkEmailRenderer:
    """Renders the homework notification from the package templates."""

    def __init__(self, template_dir: Optional[Path] = None):
        directory = template_dir if template_dir and template_dir.exists() else TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(directory)),
            autoescape=select_autoescape(["html", "xml"])
        )

    def render(self, first_name: str, hw_id: str, portal_link: str) -> Tuple[str, str, str]:
        """Return (subject, text, html)."""
        context: Dict[str, Any] = {
            "first_name": first_name,
            "hw_id": hw_id,
            "portal_link": portal_link
        }
        subject = HOMEWORK_SUBJECT.format(hw_id=hw_id)
        text = self.env.get_template("homework_email.txt").render(**context)
        html = self.env.get_template("homework_email.html").render(**context)
        return subject, text, html


def build_portal_link(portal_base_url: str, token: str) -> str:
    return f"{portal_base_url.rstrip('/')}/homework-coach/?token={token}"


def create_email_sender():
    from eduscribe.config import get_config

    mail = get_config().mail
    if not mail.enabled:
        logger.info("MAILERSEND_API_KEY or MAIL_FROM_ADDRESS not set; using null email sender")
        return NullEmailSender()

    return MailerSendEmailSender(
        api_key=mail.api_key,
        from_address=mail.from_address,
        from_name=mail.from_name,
        base_url=mail.base_url,
        timeout=mail.timeout
    )
