"""External collaborators used by the side effect orchestrator"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .google_calendar_service import GoogleCalendarClient
from .notification_service import EmailNotifier
from .zoho_crm_service import ZohoCRMClient

logger = logging.getLogger(__name__)


@dataclass
class Integrations:
    """Collaborators shared by every request; None means not configured"""

    calendar: Optional[Any] = None
    notifier: Optional[Any] = None
    crm: Optional[Any] = None


def build_integrations() -> Integrations:
    integrations = Integrations(
        calendar=GoogleCalendarClient.from_config(),
        notifier=EmailNotifier(),
        crm=ZohoCRMClient.from_config(),
    )
    logger.info(
        f"🔧 Integrations: calendar={'on' if integrations.calendar else 'off'}, "
        f"crm={'on' if integrations.crm else 'off'}"
    )
    return integrations


async def close_integrations(integrations: Integrations) -> None:
    for client in (integrations.calendar, integrations.crm):
        if client is not None and hasattr(client, "aclose"):
            await client.aclose()
