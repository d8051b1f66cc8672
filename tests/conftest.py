"""Shared test fixtures — persistence in tmp_path, registries and providers."""

from __future__ import annotations

import orjson
import pytest

from agentline.directory.mailbox import MailboxSystem
from agentline.directory.registry import AgentRegistry
from agentline.directory.server import DirectoryProvider
from agentline.storage.gateway import PersistenceGateway


@pytest.fixture
def gateway(tmp_path):
    return PersistenceGateway(tmp_path)


@pytest.fixture
def memory_gateway():
    """A gateway with persistence disabled."""
    return PersistenceGateway(None)


@pytest.fixture
def registry(gateway):
    return AgentRegistry(gateway)


@pytest.fixture
def mailbox(registry):
    return MailboxSystem(registry)


@pytest.fixture
async def team(registry):
    """alice (dev) and bob (qa), registered from their own sessions."""
    alice = await registry.register("alice", name="Alice", role="dev", capabilities=["python"])
    bob = await registry.register("bob", name="Bob", role="qa", capabilities=["testing"])
    return alice, bob


@pytest.fixture
def directory(gateway):
    return DirectoryProvider(gateway)


@pytest.fixture
def call_json():
    """Call a tool on a provider and decode its JSON text result."""

    async def _call(provider, tool, agent_name, /, **arguments):
        result = await provider.call_tool(tool, {"agentName": agent_name, **arguments})
        return orjson.loads(result.first_text)

    return _call
