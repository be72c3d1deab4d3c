"""Luma API client for attendee lookups."""

from typing import Optional

import httpx
import structlog

from attendance_nft.services.attendee import Attendee
from attendance_nft.services.exceptions import UpstreamLookupError

logger = structlog.get_logger()


class LumaClient:
    """Read-only client for the Luma event platform."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.lu.ma/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Luma client.

        Args:
            api_key: Luma API key (from LUMA_API_KEY env var)
            base_url: Luma API base URL
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def get_attendee(self, event_id: str, attendee_id: str) -> Optional[Attendee]:
        """Fetch attendee details for a check-in.

        Args:
            event_id: Luma event identifier
            attendee_id: Luma attendee identifier

        Returns:
            Attendee if Luma knows it, None if Luma answered 404 or an empty body

        Raises:
            UpstreamLookupError: Network error, timeout, rate limit, server or auth error
        """
        url = f"{self.base_url}/events/{event_id}/attendees/{attendee_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url, headers=self.headers)
        except httpx.TimeoutException as e:
            raise UpstreamLookupError(f"Luma request timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamLookupError(f"Luma network error: {e}") from e

        if response.status_code == 404:
            logger.info("luma.attendee_not_found", event_id=event_id, attendee_id=attendee_id)
            return None
        elif response.status_code == 429:
            raise UpstreamLookupError(f"Luma rate limit exceeded: {response.text}")
        elif response.status_code in (401, 403):
            raise UpstreamLookupError(
                f"Luma rejected credentials ({response.status_code}). "
                "Check LUMA_API_KEY configuration in .env file."
            )
        elif response.status_code >= 400:
            raise UpstreamLookupError(
                f"Luma request failed ({response.status_code}): {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamLookupError(f"Luma returned invalid JSON: {e}") from e

        if not data:
            return None

        return Attendee(
            id=str(data.get("id") or attendee_id),
            name=data.get("name") or "",
            email=data.get("email") or "",
            check_in_status=data.get("checkInStatus"),
            registration_date=data.get("registrationDate"),
        )
