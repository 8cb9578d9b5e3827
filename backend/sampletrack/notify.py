import os
import smtplib
from email.message import EmailMessage

EMAIL_OUTBOX: list[tuple[list[str], str, str]] = []


def send_email(recipients: list[str], subject: str, message: str) -> bool:
    """Send one message to every address in ``recipients``; return whether it went out."""
    if not recipients:
        return False
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((list(recipients), subject, message))
        return True
    server = os.getenv("SMTP_SERVER")
    if not server:
        return False
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = ", ".join(recipients)
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)
    return True
