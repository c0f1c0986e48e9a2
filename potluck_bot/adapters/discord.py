"""Discord adapter implementing :class:`MessageChannel` and :class:`EventProvider`.

It uses :mod:`httpx` to talk to Discord's HTTP API directly, which keeps the
core independent of the gateway client and easy to exercise with
:class:`httpx.MockTransport` in tests.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any

import httpx

from ..core.models import EventStatus, ExternalEvent, ScheduledEventSpec
from .base import MANAGE_EVENTS, SEND_MESSAGES, EventProvider, MessageChannel

log = logging.getLogger(__name__)

ADMINISTRATOR = 1 << 3
SEND_MESSAGES_BIT = 1 << 11
MANAGE_EVENTS_BIT = 1 << 33

# Scheduled event constants
ENTITY_TYPE_EXTERNAL = 3
PRIVACY_GUILD_ONLY = 2


def _parse_time(value: str | None) -> datetime.datetime | None:
    if not value:
        return None
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def event_from_json(data: dict[str, Any]) -> ExternalEvent:
    """Convert a Discord scheduled event object into an :class:`ExternalEvent`."""
    metadata = data.get("entity_metadata") or {}
    return ExternalEvent(
        id=str(data["id"]),
        guild_id=str(data["guild_id"]),
        name=data["name"],
        description=data.get("description"),
        status=EventStatus(int(data.get("status", EventStatus.SCHEDULED))),
        scheduled_start=_parse_time(data.get("scheduled_start_time")),
        scheduled_end=_parse_time(data.get("scheduled_end_time")),
        location=metadata.get("location"),
    )


class DiscordAdapter(MessageChannel, EventProvider):
    """Adapter that sends requests directly to the Discord HTTP API."""

    api_base = "https://discord.com/api/v10"

    def __init__(self, token: str, client: httpx.AsyncClient | None = None) -> None:
        """Store authentication ``token`` and optional HTTP ``client``."""
        self.token = token
        self.client = client or httpx.AsyncClient(timeout=10.0)
        self._bot_id: str | None = None

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        headers = {"Authorization": f"Bot {self.token}"}
        response = await self.client.request(
            method, f"{self.api_base}{path}", json=payload, headers=headers
        )
        response.raise_for_status()
        return response

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------
    async def send_message(self, channel_id: str, payload: dict[str, Any]) -> str:
        """Send a message to a channel and return its identifier."""
        response = await self._request(
            "POST", f"/channels/{channel_id}/messages", payload
        )
        return str(response.json()["id"])

    async def edit_message(
        self, channel_id: str, message_id: str, payload: dict[str, Any]
    ) -> None:
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", payload
        )

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._request("DELETE", f"/channels/{channel_id}/messages/{message_id}")

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------
    async def bot_user_id(self) -> str:
        if self._bot_id is None:
            response = await self._request("GET", "/users/@me")
            self._bot_id = str(response.json()["id"])
        return self._bot_id

    async def guild_permissions(self, guild_id: str) -> int:
        """Return the bot's guild-level permission bit set."""
        bot_id = await self.bot_user_id()
        guild = (await self._request("GET", f"/guilds/{guild_id}")).json()
        if str(guild.get("owner_id")) == bot_id:
            return ~0
        member = (await self._request("GET", f"/guilds/{guild_id}/members/{bot_id}")).json()
        roles = (await self._request("GET", f"/guilds/{guild_id}/roles")).json()
        held = {str(guild_id), *(str(r) for r in member.get("roles", []))}
        permissions = 0
        for role in roles:
            if str(role["id"]) in held:
                permissions |= int(role.get("permissions", 0))
        return permissions

    async def missing_permissions(self, guild_id: str) -> list[str]:
        permissions = await self.guild_permissions(guild_id)
        if permissions & ADMINISTRATOR:
            return []
        missing = []
        if not permissions & MANAGE_EVENTS_BIT:
            missing.append(MANAGE_EVENTS)
        if not permissions & SEND_MESSAGES_BIT:
            missing.append(SEND_MESSAGES)
        return missing

    # ------------------------------------------------------------------
    # Scheduled events
    # ------------------------------------------------------------------
    @staticmethod
    def _event_payload(spec: ScheduledEventSpec) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "name": spec.name,
            "description": spec.description,
            "scheduled_start_time": spec.scheduled_start.isoformat(),
            "scheduled_end_time": spec.scheduled_end.isoformat(),
        }
        if spec.location is not None:
            payload["entity_metadata"] = {"location": spec.location}
        return payload

    async def create_event(
        self, guild_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        payload = self._event_payload(spec)
        payload["entity_type"] = ENTITY_TYPE_EXTERNAL
        payload["privacy_level"] = PRIVACY_GUILD_ONLY
        response = await self._request(
            "POST", f"/guilds/{guild_id}/scheduled-events", payload
        )
        return event_from_json(response.json())

    async def fetch_event(self, guild_id: str, event_id: str) -> ExternalEvent | None:
        try:
            response = await self._request(
                "GET", f"/guilds/{guild_id}/scheduled-events/{event_id}"
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        return event_from_json(response.json())

    async def list_events(self, guild_id: str) -> list[ExternalEvent]:
        response = await self._request("GET", f"/guilds/{guild_id}/scheduled-events")
        return [event_from_json(item) for item in response.json()]

    async def edit_event(
        self, guild_id: str, event_id: str, spec: ScheduledEventSpec
    ) -> ExternalEvent:
        response = await self._request(
            "PATCH",
            f"/guilds/{guild_id}/scheduled-events/{event_id}",
            self._event_payload(spec),
        )
        return event_from_json(response.json())

    async def delete_event(self, guild_id: str, event_id: str) -> bool:
        try:
            await self._request(
                "DELETE", f"/guilds/{guild_id}/scheduled-events/{event_id}"
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                log.info("Scheduled event %s was already deleted", event_id)
                return False
            raise
        return True

    async def fetch_subscribers(self, guild_id: str, event_id: str) -> list[str]:
        response = await self._request(
            "GET", f"/guilds/{guild_id}/scheduled-events/{event_id}/users"
        )
        return [str(entry["user"]["id"]) for entry in response.json()]

    async def close(self) -> None:
        """Close the underlying :class:`httpx.AsyncClient`."""
        await self.client.aclose()
