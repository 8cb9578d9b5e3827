"""Notifications sent to admin users."""

from __future__ import annotations

import os
import smtplib

from sqlalchemy.orm import Session

from .. import models, notify
from ..logger import get_logger

# purpose: templated e-mail notifications to admin users, gated per notification name
# status: active
# depends_on: sampletrack.notify.send_email

logger = get_logger(__name__)

SERVICE_PLACEHOLDER = "%service"


def service_description() -> str:
    return os.getenv("SERVICE_DESCRIPTION", "SampleTrack")


def is_notification_enabled(name: str) -> bool:
    """``ADMIN_NOTIFICATIONS`` holds comma separated enabled names, or ``*`` for all."""

    configured = os.getenv("ADMIN_NOTIFICATIONS", "")
    enabled = {item.strip().lower() for item in configured.split(",") if item.strip()}
    return "*" in enabled or name.strip().lower() in enabled


def substitute(text: str | None) -> str | None:
    if text is None:
        return None
    return text.replace(SERVICE_PLACEHOLDER, service_description())


def admin_recipients(db: Session) -> list[str]:
    admins = (
        db.query(models.User)
        .filter(models.User.role == "admin")
        .order_by(models.User.id)
        .all()
    )
    return [admin.email or admin.username for admin in admins]


def send_notification(recipients: list[str], heading: str, body: str) -> bool:
    """Substitute the service description into ``heading`` and ``body`` and send them."""

    try:
        return notify.send_email(recipients, substitute(heading), substitute(body))
    except (smtplib.SMTPException, OSError):
        logger.exception("notify.send_failed", recipients=recipients, heading=heading)
        return False


def issue(db: Session, name: str, heading: str, body: str) -> bool:
    """Send the named notification to every admin; return whether it was sent."""

    if not is_notification_enabled(name):
        return False
    recipients = admin_recipients(db)
    if not recipients:
        logger.info("notify.no_admins", notification=name)
        return False
    sent = send_notification(recipients, heading, body)
    logger.info("notify.issued", notification=name, sent=sent, recipients=len(recipients))
    return sent
