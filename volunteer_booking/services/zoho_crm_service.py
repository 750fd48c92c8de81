"""
Zoho CRM Service
Keeps volunteers and their sessions in sync with Zoho CRM. The client owns its
access token and refreshes it from the long-lived refresh token when it expires.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

# Refresh the access token this many seconds before Zoho expires it
TOKEN_EXPIRY_MARGIN = 5 * 60


class CRMError(Exception):
    """Zoho CRM rejected or failed a request"""


@dataclass
class BookingSummary:
    booking_id: int
    status: str  # confirmed, cancelled
    volunteer_name: str
    volunteer_email: str
    company_name: str
    service_name: str
    start: str  # ISO 8601
    end: str  # ISO 8601
    volunteer_phone: Optional[str] = None
    host_email: Optional[str] = None
    cancellation_reason: Optional[str] = None


def split_name(full_name: str) -> tuple[str, str]:
    """Zoho requires a last name; single names go there"""
    parts = full_name.strip().split(" ", 1)
    if len(parts) == 1:
        return "", parts[0]
    return parts[0], parts[1]


class ZohoCRMClient:
    """CRM collaborator - constructed once and shared by the orchestrator"""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        domain: str = "com",
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = f"https://accounts.zoho.{domain}/oauth/v2/token"
        self.api_base_url = f"https://www.zohoapis.{domain}/crm/v3"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_config(cls) -> Optional["ZohoCRMClient"]:
        if not (config.ZOHO_CLIENT_ID and config.ZOHO_CLIENT_SECRET and config.ZOHO_REFRESH_TOKEN):
            logger.info("ℹ️ Zoho CRM credentials not configured, CRM sync disabled")
            return None
        return cls(
            client_id=config.ZOHO_CLIENT_ID,
            client_secret=config.ZOHO_CLIENT_SECRET,
            refresh_token=config.ZOHO_REFRESH_TOKEN,
            domain=config.ZOHO_DOMAIN,
        )

    async def get_access_token(self) -> str:
        async with self._token_lock:
            if self._access_token and self._expires_at > time.time() + TOKEN_EXPIRY_MARGIN:
                return self._access_token

            response = await self._client.post(
                self.token_url,
                params={
                    "refresh_token": self.refresh_token,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                },
            )
            if response.status_code != 200:
                raise CRMError(f"Failed to refresh Zoho access token: {response.status_code} {response.text}")

            data = response.json()
            if "access_token" not in data:
                raise CRMError(f"No access token in Zoho refresh response: {data}")

            self._access_token = data["access_token"]
            self._expires_at = time.time() + int(data.get("expires_in", 3600))
            logger.info("✅ Zoho CRM access token refreshed")
            return self._access_token

    async def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        access_token = await self.get_access_token()
        response = await self._client.request(
            method,
            f"{self.api_base_url}{endpoint}",
            headers={"Authorization": f"Zoho-oauthtoken {access_token}"},
            **kwargs,
        )
        if response.status_code == 204:
            return {}
        if response.status_code >= 400:
            raise CRMError(f"Zoho API request failed: {response.status_code} {response.text}")
        return response.json()

    async def find_contact_id(self, email: str) -> Optional[str]:
        result = await self._request("GET", "/Contacts/search", params={"email": email})
        data = result.get("data") or []
        return data[0]["id"] if data else None

    async def upsert_contact(self, summary: BookingSummary) -> Optional[str]:
        first_name, last_name = split_name(summary.volunteer_name)
        contact = {
            "First_Name": first_name,
            "Last_Name": last_name,
            "Email": summary.volunteer_email,
        }
        if summary.volunteer_phone:
            contact["Phone"] = summary.volunteer_phone

        contact_id = await self.find_contact_id(summary.volunteer_email)
        if contact_id:
            await self._request("PUT", f"/Contacts/{contact_id}", json={"data": [contact]})
            logger.info(f"[Zoho CRM] Contact updated: {summary.volunteer_email}")
            return contact_id

        result = await self._request("POST", "/Contacts", json={"data": [contact]})
        logger.info(f"[Zoho CRM] Contact created: {summary.volunteer_email}")
        created = result.get("data") or [{}]
        return created[0].get("details", {}).get("id")

    async def create_event(self, summary: BookingSummary, contact_id: Optional[str]) -> None:
        cancelled = summary.status == "cancelled"
        title = f"{summary.service_name} - {summary.company_name} - {summary.volunteer_name}"
        if cancelled:
            title = f"[Cancelled] {title}"

        description = f"Booking #{summary.booking_id}\nHost: {summary.host_email or 'Unassigned'}"
        if cancelled and summary.cancellation_reason:
            description += f"\nCancellation reason: {summary.cancellation_reason}"

        event = {
            "Event_Title": title,
            "Start_DateTime": summary.start,
            "End_DateTime": summary.end,
            "Description": description,
        }
        if contact_id:
            event["Who_Id"] = contact_id

        await self._request("POST", "/Events", json={"data": [event]})
        logger.info(f"[Zoho CRM] Event created: {title}")

    async def sync_booking(self, summary: BookingSummary) -> bool:
        """Best effort: upsert the volunteer and log the session. False on any failure."""
        try:
            contact_id = await self.upsert_contact(summary)
            await self.create_event(summary, contact_id)
            return True
        except (CRMError, httpx.HTTPError) as e:
            logger.error(f"❌ Zoho CRM sync failed for booking {summary.booking_id}: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
