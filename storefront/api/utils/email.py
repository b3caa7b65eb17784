import logging

from flask import current_app
from flask_mail import Message

from storefront.extensions import mail

logger = logging.getLogger(__name__)


def send_email(subject, recipients, body, sender=None, reply_to=None):
    """Plain-text UTF-8 e-mail; Flask-Mail builds the MIME parts itself."""
    if isinstance(recipients, str):
        recipients = [recipients]

    msg = Message(
        subject=subject or "",
        recipients=list(recipients or []),
        body=body or "",
        sender=sender,
        reply_to=reply_to,
    )
    msg.charset = "utf-8"
    mail.send(msg)
    return msg


def notify_owner(config_key: str, subject: str, body: str, reply_to=None) -> bool:
    """
    Send a note to the address configured under `config_key`.
    Returns False when no address is configured or sending failed; never raises.
    """
    owner = current_app.config.get(config_key)
    if not owner:
        return False
    try:
        send_email(subject=subject, recipients=[owner], body=body, reply_to=reply_to)
        return True
    except Exception:
        logger.exception("Notification to %s (%s) failed", config_key, subject)
        return False
