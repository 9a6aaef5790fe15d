"""Escalation selector: hand a chat over to a human team member."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Protocol

import httpx
from loguru import logger

from chatpilot.agent.metadata import MetadataTarget, apply_metadata
from chatpilot.bus.events import Chat, InboundEvent
from chatpilot.config.schema import Config
from chatpilot.errors import PlatformError
from chatpilot.utils.helpers import parse_datetime

_KEYWORD_PATTERNS = (
    re.compile(r"^human|person|help|stop$", re.IGNORECASE),
    re.compile(r"^human", re.IGNORECASE),
)


def wants_human(body: str) -> bool:
    """Whether the user asked to talk to a person."""
    text = (body or "").strip()
    return bool(text) and any(p.search(text) for p in _KEYWORD_PATTERNS)


class TeamClient(MetadataTarget, Protocol):
    async def list_team_members(self, device_id: str, *, force: bool = False) -> list[dict[str, Any]]: ...

    async def patch_chat_labels(self, device_id: str, chat_id: str, labels: list[str]) -> None: ...

    async def patch_chat_owner(self, device_id: str, chat_id: str, agent_id: str) -> None: ...


@dataclass
class AssignmentDecision:
    member: dict[str, Any] | None = None
    labels: list[str] | None = None
    assigned: bool = False
    errors: list[str] = field(default_factory=list)


class EscalationSelector:
    """
    Picks an eligible team member at random and assigns the chat to them.

    Eligibility: active status, not blacklisted, whitelisted when a
    whitelist exists, online when only online members are wanted, and a
    role not excluded from assignment.
    """

    def __init__(
        self,
        config: Config,
        client: TeamClient,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_eligible(self, member: dict[str, Any]) -> bool:
        team = self.config.team
        member_id = member.get("id")
        if member.get("status") != "active":
            return False
        if member_id in team.team_blacklist:
            return False
        if team.team_whitelist and member_id not in team.team_whitelist:
            return False
        if team.assign_only_to_online_members and not self._is_online(member):
            return False
        if member.get("role") in team.skip_team_roles_from_assignment:
            return False
        return True

    def _is_online(self, member: dict[str, Any]) -> bool:
        availability = member.get("availability") or {}
        if availability.get("mode") != "auto":
            return False
        last_seen = parse_datetime(member.get("lastSeenAt"))
        if last_seen is None:
            return False
        window = timedelta(minutes=self.config.team.online_window_minutes)
        return self._clock() - last_seen <= window

    async def eligible_members(self, device_id: str) -> list[dict[str, Any]]:
        members = await self.client.list_team_members(device_id)
        return [m for m in members if self.is_eligible(m)]

    async def select(self, device_id: str) -> dict[str, Any] | None:
        members = await self.eligible_members(device_id)
        if not members:
            return None
        return self._rng.choice(members)

    def label_delta(self, chat: Chat) -> list[str] | None:
        """New chat label set after assignment, or None when unchanged."""
        labels_cfg = self.config.labels
        labels = sorted(chat.labels)
        if labels_cfg.remove_labels_after_assignment:
            labels = [label for label in labels if label not in labels_cfg.set_labels_on_bot_chats]
        for label in labels_cfg.set_labels_on_user_assignment:
            if label not in labels:
                labels.append(label)
        if set(labels) == set(chat.labels):
            return None
        return labels

    async def assign(self, event: InboundEvent, *, force: bool = False) -> AssignmentDecision:
        """Assign the chat of *event*; failures are logged, never raised.

        A forced assignment runs even when member chat assignment is disabled.
        """
        chat = event.chat
        if not force and not self.config.team.enable_member_chat_assignment:
            logger.info(f"Chat assignment disabled, chat {chat.id} stays unassigned")
            return AssignmentDecision()

        try:
            member = await self.select(event.device.id)
        except (PlatformError, httpx.HTTPError) as e:
            logger.error(f"Failed to load team members: {e}")
            return AssignmentDecision(errors=[str(e)])
        if member is None:
            logger.warning(f"No eligible team member to assign chat {chat.id}")
            return AssignmentDecision()

        decision = AssignmentDecision(member=member, labels=self.label_delta(chat))
        if decision.labels is not None:
            try:
                await self.client.patch_chat_labels(event.device.id, chat.id, decision.labels)
            except (PlatformError, httpx.HTTPError) as e:
                logger.error(f"Failed to update labels of chat {chat.id}: {e}")
                decision.errors.append(str(e))

        try:
            await self.client.patch_chat_owner(event.device.id, chat.id, member["id"])
        except (PlatformError, httpx.HTTPError) as e:
            logger.error(f"Failed to assign chat {chat.id} to {member['id']}: {e}")
            decision.errors.append(str(e))
            return decision

        decision.assigned = True
        logger.info(f"Chat {chat.id} assigned to {member.get('displayName') or member['id']}")
        await apply_metadata(self.client, event, self.config.metadata.set_metadata_on_assignment)
        return decision
