from flask_mail import Message
from flask import current_app
from ..extensions import mail

def send_member_joined_email(to_email: str, booth_name: str, member_name: str, member_count: int, max_members: int) -> None:
    sender = current_app.config.get("MAIL_DEFAULT_SENDER")
    if not sender:
        # Fail fast with a meaningful message (instead of Flask-Mail assertion)
        raise RuntimeError(
            "MAIL_DEFAULT_SENDER is not configured. Set MAIL_DEFAULT_SENDER in .env"
        )

    subject = f"New member in {booth_name}"
    body = (
        f"{member_name} just joined your booth \"{booth_name}\".\n\n"
        f"Members: {member_count} / {max_members}\n"
        "You are receiving this because notifications are enabled for this booth."
    )
    msg = Message(subject=subject, recipients=[to_email], body=body, sender=sender)
    mail.send(msg)
