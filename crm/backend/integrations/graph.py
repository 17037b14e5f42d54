"""
Microsoft Graph calendar client.

Users link their Office 365 account once; the stored refresh token is
exchanged for a fresh access token whenever the current one is about to
expire. Event times are exchanged in the configured Graph timezone.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import httpx

from crm.backend.core.config import get_app_config
from crm.backend.core.exceptions import ExternalServiceError
from crm.backend.core.logging import get_logger, log_with_source
from crm.backend.core.utils import utc_now
from crm.backend.integrations.http import ExternalAPIClient
from crm.backend.models.tenant import User
from crm.backend.services.settings import TenantSettings

logger = get_logger(__name__)

GRAPH_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    subject: str
    start: datetime
    end: datetime
    location: str | None = None
    is_all_day: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CalendarEvent":
        return cls(
            id=data.get("id", ""),
            subject=data.get("subject") or "(sans titre)",
            start=_parse_graph_datetime(data["start"]["dateTime"]),
            end=_parse_graph_datetime(data["end"]["dateTime"]),
            location=(data.get("location") or {}).get("displayName") or None,
            is_all_day=bool(data.get("isAllDay")),
        )


def _parse_graph_datetime(value: str) -> datetime:
    # Graph returns seven fractional digits, e.g. 2026-03-02T09:00:00.0000000
    return datetime.fromisoformat(value[:19])


class GraphCalendarClient:
    """
    Calendar operations on behalf of one user.

    Token refreshes are written to the ``user`` row; the caller owns the
    surrounding transaction.
    """

    def __init__(
        self,
        user: User,
        settings: TenantSettings,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        if not (settings.o365_client_id and settings.o365_client_secret and settings.o365_tenant_id):
            raise ExternalServiceError("Office 365 non configuré")
        if not user.o365_refresh_token:
            raise ExternalServiceError("Compte Office 365 non connecté")
        self.user = user
        self.settings = settings
        self.config = get_app_config().integrations.graph
        self.auth = ExternalAPIClient(
            "graph-auth", self.config.authority_url, timeout=timeout, transport=transport,
        )
        self.api = ExternalAPIClient(
            "graph", self.config.api_url, timeout=timeout, transport=transport,
        )

    async def __aenter__(self) -> "GraphCalendarClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.auth.close()
        await self.api.close()

    def _token_is_fresh(self, now: datetime) -> bool:
        expires_at = self.user.o365_token_expires_at
        margin = timedelta(seconds=self.config.token_refresh_margin_seconds)
        return bool(self.user.o365_access_token and expires_at and expires_at > now + margin)

    async def access_token(self, now: datetime | None = None) -> str:
        now = now or utc_now()
        if self._token_is_fresh(now):
            return self.user.o365_access_token

        data = await self.auth.post_json(
            f"/{self.settings.o365_tenant_id}/oauth2/v2.0/token",
            data={
                "client_id": self.settings.o365_client_id,
                "client_secret": self.settings.o365_client_secret,
                "refresh_token": self.user.o365_refresh_token,
                "grant_type": "refresh_token",
                "scope": self.config.scope,
            },
        )
        self.user.o365_access_token = data["access_token"]
        self.user.o365_refresh_token = data.get("refresh_token") or self.user.o365_refresh_token
        self.user.o365_token_expires_at = now + timedelta(seconds=int(data.get("expires_in", 3600)))
        log_with_source(logger, "integrations", "info", "Graph token refreshed", user_id=self.user.id)
        return self.user.o365_access_token

    async def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {await self.access_token()}",
            "Prefer": f'outlook.timezone="{self.config.timezone}"',
        }

    async def list_events(self, start: datetime, end: datetime, limit: int = 50) -> list[CalendarEvent]:
        """Events overlapping [start, end), both in the Graph timezone."""
        data = await self.api.get_json(
            "/me/calendarview",
            params={
                "startDateTime": start.strftime(GRAPH_DATETIME_FORMAT),
                "endDateTime": end.strftime(GRAPH_DATETIME_FORMAT),
                "$orderby": "start/dateTime",
                "$top": str(limit),
                "$select": "id,subject,start,end,location,isAllDay",
            },
            headers=await self._headers(),
        )
        return [CalendarEvent.from_api(item) for item in data.get("value", [])]

    async def create_event(
        self,
        subject: str,
        start: datetime,
        end: datetime,
        location: str | None = None,
        body: str | None = None,
    ) -> CalendarEvent:
        payload: dict[str, Any] = {
            "subject": subject,
            "start": {"dateTime": start.strftime(GRAPH_DATETIME_FORMAT), "timeZone": self.config.timezone},
            "end": {"dateTime": end.strftime(GRAPH_DATETIME_FORMAT), "timeZone": self.config.timezone},
            "isReminderOn": True,
            "reminderMinutesBeforeStart": self.config.reminder_minutes_before,
        }
        if location:
            payload["location"] = {"displayName": location}
        if body:
            payload["body"] = {"contentType": "text", "content": body}
        data = await self.api.post_json("/me/events", json=payload, headers=await self._headers())
        log_with_source(logger, "integrations", "info", "Calendar event created", user_id=self.user.id)
        return CalendarEvent.from_api(data)
