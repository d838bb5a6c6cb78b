"""Microsoft Teams meetings via the Graph calendar events API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"


class MeetingError(RuntimeError):
    """Raised when a meeting provider call fails."""


@dataclass(slots=True)
class MeetingInfo:
    """Identifiers returned when a meeting is created."""

    meeting_id: str
    join_url: Optional[str] = None


class MeetingProvider(Protocol):
    async def create(
        self,
        subject: str,
        description: str,
        start: datetime,
        end: datetime,
        attendees: List[str],
    ) -> MeetingInfo: ...

    async def update(
        self,
        meeting_id: str,
        subject: str,
        description: str,
        start: datetime,
        end: datetime,
        attendees: List[str],
    ) -> None: ...

    async def delete(self, meeting_id: str) -> None: ...


def _graph_time(value: datetime) -> Dict[str, str]:
    utc = value.astimezone(timezone.utc).replace(tzinfo=None)
    return {"dateTime": utc.isoformat(), "timeZone": "UTC"}


def _event_body(
    subject: str,
    description: str,
    start: datetime,
    end: datetime,
    attendees: List[str],
) -> Dict[str, Any]:
    return {
        "subject": subject,
        "body": {"contentType": "HTML", "content": description or ""},
        "start": _graph_time(start),
        "end": _graph_time(end),
        "attendees": [
            {"emailAddress": {"address": email}, "type": "required"}
            for email in attendees
        ],
        "isOnlineMeeting": True,
        "onlineMeetingProvider": "teamsForBusiness",
    }


class TeamsMeetingClient:
    """Creates, moves and cancels Teams meetings for shifts."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = GRAPH_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not access_token:
            raise MeetingError("Microsoft access token not found.")
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(
                    method, f"{self._base_url}{path}", headers=headers, json=body
                )
        except httpx.HTTPError as exc:
            raise MeetingError(f"Graph network error: {exc}") from exc

        if response.status_code >= 400:
            try:
                detail = response.json().get("error", {}).get("message") or response.reason_phrase
            except ValueError:
                detail = response.text or response.reason_phrase
            raise MeetingError(f"Graph request {method} {path} failed ({response.status_code}): {detail}")

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def create(
        self,
        subject: str,
        description: str,
        start: datetime,
        end: datetime,
        attendees: List[str],
    ) -> MeetingInfo:
        data = await self._request("POST", "/me/events", _event_body(subject, description, start, end, attendees))
        meeting_id = data.get("id")
        if not meeting_id:
            raise MeetingError("Graph create response missing event id.")
        join_url = (data.get("onlineMeeting") or {}).get("joinUrl")
        logger.info("[Teams] Created meeting %s", meeting_id)
        return MeetingInfo(meeting_id=meeting_id, join_url=join_url)

    async def update(
        self,
        meeting_id: str,
        subject: str,
        description: str,
        start: datetime,
        end: datetime,
        attendees: List[str],
    ) -> None:
        await self._request(
            "PATCH",
            f"/me/events/{meeting_id}",
            _event_body(subject, description, start, end, attendees),
        )
        logger.info("[Teams] Updated meeting %s", meeting_id)

    async def delete(self, meeting_id: str) -> None:
        await self._request("DELETE", f"/me/events/{meeting_id}")
        logger.info("[Teams] Deleted meeting %s", meeting_id)
