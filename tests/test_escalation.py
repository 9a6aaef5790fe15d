"""Tests for the escalation selector."""

import random
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest
from conftest import CHAT_ID, FakeClient, make_event

from chatpilot.agent.escalation import EscalationSelector, wants_human
from chatpilot.config.schema import Config, TeamConfig

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _member(member_id: str, **overrides) -> dict:
    return {"id": member_id, "status": "active", "role": "agent", **overrides}


def _selector(config: Config, client: FakeClient, seed: int = 1) -> EscalationSelector:
    return EscalationSelector(config, client, rng=random.Random(seed), clock=lambda: NOW)


@pytest.mark.parametrize("body", ["human", "Human please", "HUMAN", "I need help", "stop", "talk to a person"])
def test_keyword_matches(body: str) -> None:
    assert wants_human(body) is True


@pytest.mark.parametrize("body", ["", "hello", "what are your prices?", "a humane company"])
def test_keyword_does_not_match(body: str) -> None:
    assert wants_human(body) is False


def test_eligibility_rules() -> None:
    config = Config(team=TeamConfig(
        team_blacklist=["c" * 24],
        skip_team_roles_from_assignment=["admin"],
    ))
    selector = _selector(config, FakeClient())

    assert selector.is_eligible(_member("a" * 24)) is True
    assert selector.is_eligible(_member("a" * 24, status="disabled")) is False
    assert selector.is_eligible(_member("c" * 24)) is False
    assert selector.is_eligible(_member("d" * 24, role="admin")) is False


def test_whitelist_restricts_members() -> None:
    config = Config(team=TeamConfig(team_whitelist=["a" * 24], skip_team_roles_from_assignment=[]))
    selector = _selector(config, FakeClient())
    assert selector.is_eligible(_member("a" * 24)) is True
    assert selector.is_eligible(_member("b" * 24)) is False


def test_online_only() -> None:
    config = Config(team=TeamConfig(assign_only_to_online_members=True))
    selector = _selector(config, FakeClient())
    recent = (NOW - timedelta(minutes=10)).isoformat()
    stale = (NOW - timedelta(minutes=45)).isoformat()

    assert selector.is_eligible(_member("a" * 24, availability={"mode": "auto"}, lastSeenAt=recent)) is True
    assert selector.is_eligible(_member("a" * 24, availability={"mode": "auto"}, lastSeenAt=stale)) is False
    assert selector.is_eligible(_member("a" * 24, availability={"mode": "away"}, lastSeenAt=recent)) is False
    assert selector.is_eligible(_member("a" * 24)) is False


@pytest.mark.asyncio
async def test_selection_is_uniform_over_eligible_members() -> None:
    members = [_member("a" * 24), _member("b" * 24), _member("c" * 24), _member("d" * 24, role="admin")]
    selector = _selector(Config(), FakeClient(members=members), seed=42)

    counts = Counter()
    for _ in range(3000):
        counts[(await selector.select("dev-1"))["id"]] += 1

    assert "d" * 24 not in counts
    assert set(counts) == {"a" * 24, "b" * 24, "c" * 24}
    for count in counts.values():
        assert 850 < count < 1150


@pytest.mark.asyncio
async def test_assign_patches_labels_then_owner_then_metadata() -> None:
    client = FakeClient(members=[_member("a" * 24)])
    selector = _selector(Config(), client)
    event = make_event("human", labels=["bot", "vip"])

    decision = await selector.assign(event)

    assert decision.assigned is True
    assert decision.member["id"] == "a" * 24
    assert client.calls == ["labels", "owner", "metadata"]
    assert client.label_patches == [(CHAT_ID, ["vip", "from-bot"])]
    assert client.owner_patches == [(CHAT_ID, "a" * 24)]
    assert client.metadata_patches[0][1][0]["key"] == "bot_stop"


@pytest.mark.asyncio
async def test_unchanged_labels_are_not_patched() -> None:
    client = FakeClient(members=[_member("a" * 24)])
    selector = _selector(Config(), client)
    decision = await selector.assign(make_event("human", labels=["from-bot"]))
    assert decision.labels is None
    assert client.label_patches == []
    assert client.owner_patches == [(CHAT_ID, "a" * 24)]


@pytest.mark.asyncio
async def test_no_eligible_member_patches_nothing() -> None:
    client = FakeClient(members=[_member("a" * 24, status="disabled")])
    decision = await _selector(Config(), client).assign(make_event("human"))
    assert decision.assigned is False
    assert decision.member is None
    assert client.calls == []


@pytest.mark.asyncio
async def test_assignment_disabled() -> None:
    config = Config(team=TeamConfig(enable_member_chat_assignment=False))
    client = FakeClient(members=[_member("a" * 24)])
    decision = await _selector(config, client).assign(make_event("human"))
    assert decision.assigned is False
    assert client.calls == []


@pytest.mark.asyncio
async def test_assignment_metadata_skipped_when_identical() -> None:
    config = Config()
    config.metadata.set_metadata_on_assignment[0].value = "done"
    client = FakeClient(members=[_member("a" * 24)])
    event = make_event("human", contact_metadata=[{"key": "bot_stop", "value": "done"}])

    await _selector(config, client).assign(event)

    assert client.metadata_patches == []


@pytest.mark.asyncio
async def test_forced_assignment_ignores_disabled_setting() -> None:
    config = Config(team=TeamConfig(enable_member_chat_assignment=False))
    client = FakeClient(members=[_member("a" * 24)])
    decision = await _selector(config, client).assign(make_event("too many"), force=True)
    assert decision.assigned is True
    assert client.owner_patches == [(CHAT_ID, "a" * 24)]
