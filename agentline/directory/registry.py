"""Agent Registry — who is in the company directory.

Each session (the calling agent's ``agentName``) holds at most one identity.
Every mutation rewrites the whole ``company_directory.json`` document.
"""

from __future__ import annotations

import logging
from typing import Iterator

from pydantic import ValidationError

from agentline.config import settings
from agentline.directory.models import AgentIdentity
from agentline.exceptions import (
    AgentNotRegisteredError,
    DirectoryFullError,
    InvalidParamsError,
)
from agentline.storage.gateway import PersistenceGateway
from agentline.types import AgentStatus, epoch_millis, now

_logger = logging.getLogger(__name__)

DIRECTORY_DOCUMENT = "company_directory.json"
DOCUMENT_VERSION = "1.0.0"


def _matches(
    agent: AgentIdentity,
    status: str | None,
    role: str | None,
    capability: str | None,
) -> bool:
    if status and status != "all" and agent.status.value != status:
        return False
    if role and role.lower() not in agent.role.lower():
        return False
    if capability:
        needle = capability.lower()
        if not any(needle in cap.lower() for cap in agent.capabilities):
            return False
    return True


class AgentRegistry:
    """In-memory directory of agent identities, persisted after every change."""

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        max_agents: int | None = None,
    ) -> None:
        self._gateway = gateway or PersistenceGateway()
        self._max_agents = max_agents if max_agents is not None else settings.max_agents
        self._agents: dict[str, AgentIdentity] = {}

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[AgentIdentity]:
        return iter(list(self._agents.values()))

    # ── Lookup ───────────────────────────────────────────────────

    def get(self, agent_id: str) -> AgentIdentity | None:
        return self._agents.get(agent_id)

    def by_session(self, session_name: str) -> AgentIdentity | None:
        return next((a for a in self._agents.values() if a.session_name == session_name), None)

    def by_name(self, name: str) -> AgentIdentity | None:
        lowered = name.lower()
        return next((a for a in self._agents.values() if a.name.lower() == lowered), None)

    def require(self, session_name: str) -> AgentIdentity:
        agent = self.by_session(session_name)
        if agent is None:
            raise AgentNotRegisteredError("Agent not registered in directory")
        return agent

    def find(self, agent_id: str | None = None, name: str | None = None) -> AgentIdentity | None:
        """Look up by ID, else by case-insensitive display name."""
        if agent_id is None and name is None:
            raise InvalidParamsError("Either agent_id or agent_name must be provided")
        if agent_id is not None:
            return self.get(agent_id)
        return self.by_name(name)

    def resolve_address(self, address: str) -> AgentIdentity | None:
        """Resolve an email address: agent ID, then session name, then display name."""
        return self.get(address) or self.by_session(address) or self.by_name(address)

    def list(
        self,
        status: str | None = None,
        role: str | None = None,
        capability: str | None = None,
    ) -> list[AgentIdentity]:
        """Snapshot of matching agents, most recently seen first."""
        agents = [a for a in self._agents.values() if _matches(a, status, role, capability)]
        agents.sort(key=lambda a: a.last_seen, reverse=True)
        return agents

    def available_recipients(
        self,
        session_name: str,
        status: str | None = "active",
        role: str | None = None,
        capability: str | None = None,
        include_self: bool = False,
    ) -> list[AgentIdentity]:
        recipients = [
            a for a in self.list(status, role, capability)
            if include_self or a.session_name != session_name
        ]
        if include_self and not any(a.session_name == session_name for a in recipients):
            me = self.by_session(session_name)
            if me is not None:
                recipients.append(me)
        return recipients

    # ── Mutations ────────────────────────────────────────────────

    async def register(
        self,
        session_name: str,
        name: str,
        role: str,
        capabilities: list[str] | None = None,
        status: AgentStatus | str = AgentStatus.ACTIVE,
        description: str = "",
    ) -> AgentIdentity:
        """Create the session's identity, replacing any previous one.

        A replaced identity hands its message queue and inbox to the new one.
        """
        previous = self.by_session(session_name)
        if previous is None and len(self._agents) >= self._max_agents:
            raise DirectoryFullError(
                f"Directory full: maximum {self._max_agents} agents allowed"
            )

        stamp = now()
        agent = AgentIdentity(
            id=f"{session_name}_{epoch_millis()}",
            name=name,
            role=role,
            capabilities=list(capabilities or []),
            status=AgentStatus(status),
            description=description,
            registered_at=stamp,
            last_seen=stamp,
            session_name=session_name,
        )
        if previous is not None:
            agent.messages = previous.messages
            agent.email_inbox = previous.email_inbox
            del self._agents[previous.id]
            _logger.info("Session %s re-registered (%s -> %s)", session_name, previous.id, agent.id)

        self._agents[agent.id] = agent
        _logger.info("Registered agent %s (%s) as %s", agent.name, agent.role, agent.id)
        await self.save()
        return agent

    async def update_status(
        self,
        session_name: str,
        status: AgentStatus | str,
        message: str = "",
    ) -> AgentIdentity:
        agent = self.require(session_name)
        agent.status = AgentStatus(status)
        agent.status_message = message
        agent.last_seen = now()
        await self.save()
        return agent

    async def unregister(self, session_name: str, reason: str = "") -> AgentIdentity:
        """Remove the session's identity along with its queued messages and mail."""
        agent = self.by_session(session_name)
        if agent is None:
            raise AgentNotRegisteredError("Agent not found in directory")
        del self._agents[agent.id]
        _logger.info("Unregistered agent %s: %s", agent.id, reason or "no reason given")
        await self.save()
        return agent

    # ── Persistence ──────────────────────────────────────────────

    def to_document(self) -> dict:
        return {
            "version": DOCUMENT_VERSION,
            "timestamp": now().isoformat(),
            "agents": {agent_id: a.to_json() for agent_id, a in self._agents.items()},
        }

    async def save(self) -> bool:
        return await self._gateway.save_document(DIRECTORY_DOCUMENT, self.to_document())

    async def load(self) -> int:
        """Replace in-memory state with the persisted document.

        Entries that fail validation are logged and skipped. Returns the
        number of agents loaded.
        """
        document = await self._gateway.load_document(DIRECTORY_DOCUMENT)
        if document is None:
            return 0
        entries = document.get("agents") if isinstance(document, dict) else None
        if not isinstance(entries, dict):
            _logger.warning("Directory document has no agents map; starting empty")
            return 0

        loaded: dict[str, AgentIdentity] = {}
        for agent_id, entry in entries.items():
            try:
                loaded[agent_id] = AgentIdentity.model_validate(entry)
            except ValidationError as e:
                _logger.warning("Skipping agent %s: %s", agent_id, e)
        self._agents = loaded
        _logger.info("Loaded %d agents from %s", len(loaded), DIRECTORY_DOCUMENT)
        return len(loaded)
