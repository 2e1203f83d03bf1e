"""
Email service using SendGrid for invitation and team notifications.
"""

import os
import logging
from typing import Optional
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_bool_env(key: str, default: bool = True) -> bool:
    """
    Parse a boolean environment variable.

    "true", "1" and "yes" (any case) are True; anything else set is False.

    Args:
        key: Environment variable name
        default: Default value if the variable is not set
    """
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


# SendGrid Configuration
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
SENDGRID_FROM_EMAIL = os.getenv("SENDGRID_FROM_EMAIL", "noreply@rinkside.app")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
ENABLE_EMAIL = get_bool_env("ENABLE_EMAIL", default=True)


def is_enabled() -> bool:
    """Email is sent only when enabled and SendGrid is configured."""
    if not ENABLE_EMAIL:
        logger.info("Email sending is disabled. Email notification skipped.")
        return False
    if not SENDGRID_API_KEY:
        logger.warning("SENDGRID_API_KEY not configured. Email notification skipped.")
        return False
    return True


def build_invitation_url(token: str) -> str:
    """Link the invitee follows to accept."""
    return f"{FRONTEND_URL}/invite/{token}"


def _send(to_email: str, subject: str, body: str) -> bool:
    message = Mail(
        from_email=Email(SENDGRID_FROM_EMAIL),
        to_emails=To(to_email),
        subject=subject,
        plain_text_content=Content("text/plain", body),
    )
    sg = SendGridAPIClient(SENDGRID_API_KEY)
    response = sg.send(message)

    if 200 <= response.status_code < 300:
        logger.info(f"Email '{subject}' sent to {to_email}")
        return True
    logger.error(f"SendGrid returned status {response.status_code}: {response.body}")
    return False


async def send_invitation_email(
    to_email: str,
    team_name: str,
    token: str,
    inviter_name: Optional[str] = None,
    expires_in_days: int = 7,
) -> bool:
    """
    Send a team invitation with its accept link.

    Args:
        to_email: Invitee email
        team_name: Team the invitation grants membership to
        token: Invitation token
        inviter_name: Display name of the inviting admin
        expires_in_days: Validity window shown to the invitee

    Returns:
        bool: True if sent or skipped by configuration, False on failure
    """
    if not is_enabled():
        return True

    try:
        inviter = inviter_name or "A team admin"
        body = "\n".join(
            [
                f"{inviter} has invited you to join {team_name} on Rinkside.",
                "",
                "Accept the invitation here:",
                build_invitation_url(token),
                "",
                f"This invitation expires in {expires_in_days} days.",
                "",
                "---",
                "If you did not expect this invitation, you can ignore this email.",
            ]
        )
        return _send(to_email, f"You're invited to join {team_name}", body)
    except Exception as e:
        logger.error(f"Failed to send invitation email to {to_email}: {str(e)}")
        # Invitation rows are kept even when delivery fails
        return False


async def send_added_to_team_email(
    to_email: str,
    team_name: str,
    inviter_name: Optional[str] = None,
) -> bool:
    """
    Notify an existing user that they were added to a team directly.

    Returns:
        bool: True if sent or skipped by configuration, False on failure
    """
    if not is_enabled():
        return True

    try:
        inviter = inviter_name or "A team admin"
        body = "\n".join(
            [
                f"{inviter} has added you to {team_name} on Rinkside.",
                "",
                "Sign in to see your team:",
                FRONTEND_URL,
            ]
        )
        return _send(to_email, f"You've been added to {team_name}", body)
    except Exception as e:
        logger.error(f"Failed to send team notification email to {to_email}: {str(e)}")
        return False
