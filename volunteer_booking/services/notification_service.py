"""
Notification Service
Renders a named template for one recipient and hands it to the email transport.
Never raises: delivery problems come back as NotificationResult(success=False).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .. import email_templates
from ..email_service import send_email
from ..shared.validators import sanitize_string

logger = logging.getLogger(__name__)

BOOKING_CONFIRMATION = "booking_confirmation"
HOST_ASSIGNMENT = "host_assignment"
HOST_REASSIGNED = "host_reassigned"
CANCELLATION_VOLUNTEER = "cancellation_volunteer"
CANCELLATION_HOST = "cancellation_host"
BOOKING_REMINDER = "booking_reminder"
HOST_REMINDER = "host_reminder"
SESSION_STARTING_SOON = "session_starting_soon"
HOST_SESSION_STARTING_SOON = "host_session_starting_soon"


@dataclass
class NotificationResult:
    success: bool
    error: Optional[str] = None


# template type -> (MJML template, subject builder)
TEMPLATES: dict[str, tuple[Callable[..., str], Callable[[dict], str]]] = {
    BOOKING_CONFIRMATION: (
        email_templates.booking_confirmation_template,
        lambda v: f"Your {v['service_name']} session with {v['company_name']} is confirmed",
    ),
    HOST_ASSIGNMENT: (
        email_templates.host_assignment_template,
        lambda v: f"New assignment: {v['volunteer_name']} - {v['company_name']}",
    ),
    HOST_REASSIGNED: (
        email_templates.host_reassigned_template,
        lambda v: f"Reassigned: {v['volunteer_name']} - {v['company_name']}",
    ),
    CANCELLATION_VOLUNTEER: (
        email_templates.cancellation_volunteer_template,
        lambda v: f"Cancelled: your {v['service_name']} session with {v['company_name']}",
    ),
    CANCELLATION_HOST: (
        email_templates.cancellation_host_template,
        lambda v: f"Cancelled: {v['volunteer_name']} - {v['company_name']}",
    ),
    BOOKING_REMINDER: (
        email_templates.booking_reminder_template,
        lambda v: f"Reminder: your {v['service_name']} session is tomorrow",
    ),
    HOST_REMINDER: (
        email_templates.host_assignment_template,
        lambda v: f"Reminder: {v['volunteer_name']} - {v['company_name']} tomorrow",
    ),
    SESSION_STARTING_SOON: (
        email_templates.session_starting_soon_template,
        lambda v: f"⏰ Your session starts in {v.get('hours', 2)} hours - {v['company_name']}",
    ),
    HOST_SESSION_STARTING_SOON: (
        email_templates.host_session_starting_soon_template,
        lambda v: f"⏰ Session in {v.get('hours', 2)} hours - {v['company_name']}",
    ),
}


class EmailNotifier:
    """Notification collaborator backed by the MJML email service"""

    def __init__(self, sender: Callable = send_email):
        self._send = sender

    async def send(self, template_type: str, recipient: str, variables: dict) -> NotificationResult:
        if template_type not in TEMPLATES:
            logger.error(f"❌ Unknown email template: {template_type}")
            return NotificationResult(success=False, error=f"Unknown template {template_type}")

        template, subject_for = TEMPLATES[template_type]
        # Volunteer supplied values end up inside HTML
        safe_variables = {
            key: sanitize_string(value) if isinstance(value, str) else value
            for key, value in variables.items()
        }

        try:
            mjml_content = template(**safe_variables)
            subject = subject_for(variables)
            await self._send(to=recipient, subject=subject, mjml_content=mjml_content)
            logger.info(f"✅ {template_type} email sent successfully to {recipient}")
            return NotificationResult(success=True)
        except Exception as e:
            logger.error(f"❌ Failed to send {template_type} email to {recipient}: {e}")
            return NotificationResult(success=False, error=str(e))
