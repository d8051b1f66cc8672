"""Tests for the agent registry: registration, lookup and persistence."""

import orjson
import pytest

from agentline.directory.registry import DIRECTORY_DOCUMENT, AgentRegistry
from agentline.exceptions import AgentNotRegisteredError, DirectoryFullError, InvalidParamsError
from agentline.types import AgentStatus


async def test_register(registry):
    agent = await registry.register("alice", name="Alice", role="dev", capabilities=["python"])
    assert agent.id.startswith("alice_")
    assert agent.session_name == "alice"
    assert agent.status == AgentStatus.ACTIVE
    assert registry.by_session("alice") is agent
    assert registry.get(agent.id) is agent
    assert len(registry) == 1


async def test_reregistration_replaces_identity_and_keeps_queues(registry, mailbox, team):
    alice, bob = team
    await mailbox.send_email("alice", ["bob"], "Hi", "there")

    renamed = await registry.register("bob", name="Robert", role="lead")
    assert len(registry) == 2
    assert registry.by_session("bob") is renamed
    assert renamed.name == "Robert"
    assert len(renamed.email_inbox) == 1


async def test_capacity(gateway):
    registry = AgentRegistry(gateway, max_agents=3)
    for i in range(3):
        await registry.register(f"agent{i}", name=f"Agent {i}", role="worker")

    with pytest.raises(DirectoryFullError, match="maximum 3 agents"):
        await registry.register("extra", name="Extra", role="worker")
    assert len(registry) == 3
    assert registry.by_session("extra") is None

    # Re-registering an existing session does not need a free slot.
    await registry.register("agent0", name="Agent Zero", role="worker")
    assert len(registry) == 3


async def test_default_capacity_is_one_hundred(gateway):
    registry = AgentRegistry(gateway)
    for i in range(100):
        await registry.register(f"s{i}", name=f"N{i}", role="r")
    with pytest.raises(DirectoryFullError):
        await registry.register("s100", name="N100", role="r")
    assert len(registry) == 100


async def test_find(registry, team):
    alice, bob = team
    assert registry.find(agent_id=bob.id) is bob
    assert registry.find(name="ALICE") is alice
    assert registry.find(name="carol") is None
    with pytest.raises(InvalidParamsError):
        registry.find()


async def test_resolve_address(registry, team):
    alice, bob = team
    assert registry.resolve_address(bob.id) is bob
    assert registry.resolve_address("bob") is bob
    assert registry.resolve_address("Alice") is alice
    assert registry.resolve_address("nobody") is None


async def test_list_filters(registry, team):
    alice, bob = team
    await registry.update_status("bob", "busy", "in a meeting")

    assert {a.name for a in registry.list()} == {"Alice", "Bob"}
    assert [a.name for a in registry.list(status="active")] == ["Alice"]
    assert [a.name for a in registry.list(status="all", role="Q")] == ["Bob"]
    assert [a.name for a in registry.list(capability="PYTH")] == ["Alice"]
    # most recently seen first
    assert registry.list()[0] is bob


async def test_available_recipients(registry, team):
    alice, bob = team
    assert [a.name for a in registry.available_recipients("alice")] == ["Bob"]
    names = {a.name for a in registry.available_recipients("alice", include_self=True)}
    assert names == {"Alice", "Bob"}
    await registry.update_status("bob", "offline")
    assert registry.available_recipients("alice") == []
    assert [a.name for a in registry.available_recipients("alice", status="all")] == ["Bob"]


async def test_update_status_requires_registration(registry):
    with pytest.raises(AgentNotRegisteredError):
        await registry.update_status("ghost", "busy")


async def test_unregister(registry, team):
    alice, _ = team
    removed = await registry.unregister("alice", reason="done")
    assert removed.id == alice.id
    assert registry.by_session("alice") is None
    with pytest.raises(AgentNotRegisteredError, match="Agent not found in directory"):
        await registry.unregister("alice")


async def test_persistence_roundtrip(gateway, registry, mailbox, team):
    await mailbox.send_directory_message("alice", "ping", recipient_name="Bob")
    await mailbox.send_email("bob", ["alice"], "Status", "all good")

    reloaded = AgentRegistry(gateway)
    assert await reloaded.load() == 2

    alice = reloaded.by_session("alice")
    bob = reloaded.by_session("bob")
    assert alice.capabilities == ["python"]
    assert bob.messages[0].content == "ping"
    assert alice.email_inbox[0].subject == "Status"
    assert alice.email_inbox[0].thread_id == alice.email_inbox[0].id


async def test_document_layout(gateway, tmp_path, registry, team):
    document = orjson.loads((tmp_path / DIRECTORY_DOCUMENT).read_bytes())
    assert document["version"] == "1.0.0"
    assert "timestamp" in document
    alice, _ = team
    entry = document["agents"][alice.id]
    assert entry["session_name"] == "alice"
    assert entry["messages"] == []
    assert entry["email_inbox"] == []


async def test_load_skips_invalid_entries(gateway, tmp_path, registry, team):
    path = tmp_path / DIRECTORY_DOCUMENT
    document = orjson.loads(path.read_bytes())
    document["agents"]["broken_1"] = {"name": "No session"}
    path.write_bytes(orjson.dumps(document))

    reloaded = AgentRegistry(gateway)
    assert await reloaded.load() == 2
    assert reloaded.get("broken_1") is None


async def test_load_without_document(gateway):
    assert await AgentRegistry(gateway).load() == 0


async def test_load_corrupt_document_starts_empty(gateway, tmp_path):
    (tmp_path / DIRECTORY_DOCUMENT).write_text("{{{")
    registry = AgentRegistry(gateway)
    assert await registry.load() == 0
    assert len(registry) == 0
