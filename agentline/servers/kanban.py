"""Kanban server — tickets moving through a fixed workflow pipeline.

Each agent gets its own board, stored as human-readable markdown:
``<agent>/tickets/NNN-slug.md`` per ticket plus ``<agent>/KANBAN_BOARD.md``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from agentline.config import settings
from agentline.exceptions import TicketNotFoundError
from agentline.protocol.messages import ToolResult
from agentline.protocol.provider import ToolProvider
from agentline.storage.gateway import PersistenceGateway
from agentline.tools.schema import ToolArguments
from agentline.types import now, safe_agent_name

_logger = logging.getLogger(__name__)

STATUS_PIPELINE = (
    "Backlog",
    "In progress",
    "Waiting for test",
    "In test",
    "Waiting for reviews",
    "In review",
    "Complete",
)
FINAL_STATUS = STATUS_PIPELINE[-1]

StatusName = Literal[
    "Backlog",
    "In progress",
    "Waiting for test",
    "In test",
    "Waiting for reviews",
    "In review",
    "Complete",
]

_SLUG = re.compile(r"[^a-z0-9]+")


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_PRIORITY_RANK = {p: i for i, p in enumerate(TicketPriority)}
_PRIORITY_NAMES = {p.value for p in TicketPriority}


def slugify(text: str) -> str:
    return _SLUG.sub("-", text.lower()).strip("-")


def _parse_time(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class KanbanTicket(BaseModel):
    id: int
    title: str
    description: str
    status: str = "Backlog"
    priority: TicketPriority = TicketPriority.MEDIUM
    assignee: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    completed_at: datetime | None = None

    @property
    def file_name(self) -> str:
        return f"{self.id:03d}-{slugify(self.title)}.md"

    def move_to(self, status: str) -> None:
        stamp = now()
        self.status = status
        self.updated_at = stamp
        self.completed_at = stamp if status == FINAL_STATUS else None

    def board_line(self, with_tags: bool = False) -> str:
        line = f"- ({self.priority.value}) **#{self.id}** {self.title}"
        if self.assignee:
            line += f" [@{self.assignee}]"
        if with_tags and self.tags:
            line += f" [{', '.join(self.tags)}]"
        return line

    def to_markdown(self) -> str:
        lines = [f"# {self.title}", "", f"**Status:** {self.status}", f"**Priority:** {self.priority.value}"]
        if self.assignee:
            lines.append(f"**Assignee:** @{self.assignee}")
        if self.tags:
            lines.append(f"**Tags:** {', '.join(self.tags)}")
        lines.append(f"**Created:** {self.created_at.isoformat()}")
        lines.append(f"**Updated:** {self.updated_at.isoformat()}")
        if self.completed_at:
            lines.append(f"**Completed:** {self.completed_at.isoformat()}")
        lines += ["", "## Description", "", self.description, ""]
        return "\n".join(lines)

    @classmethod
    def from_markdown(cls, ticket_id: int, text: str) -> KanbanTicket | None:
        """Parse a ticket file. Returns None when it has no title line."""
        fields: dict = {"id": ticket_id}
        description: list[str] = []
        in_description = False

        for line in text.split("\n"):
            if in_description:
                description.append(line)
            elif line.startswith("# "):
                fields["title"] = line[2:].strip()
            elif line.strip() == "## Description":
                in_description = True
            elif line.startswith("**Status:** "):
                fields["status"] = line[len("**Status:** "):].strip()
            elif line.startswith("**Priority:** "):
                value = line[len("**Priority:** "):].strip().lower()
                if value in _PRIORITY_NAMES:
                    fields["priority"] = TicketPriority(value)
            elif line.startswith("**Assignee:** "):
                fields["assignee"] = line[len("**Assignee:** "):].strip().removeprefix("@")
            elif line.startswith("**Tags:** "):
                fields["tags"] = [t.strip() for t in line[len("**Tags:** "):].split(",") if t.strip()]
            elif line.startswith("**Created:** "):
                fields["created_at"] = _parse_time(line[len("**Created:** "):].strip())
            elif line.startswith("**Updated:** "):
                fields["updated_at"] = _parse_time(line[len("**Updated:** "):].strip())
            elif line.startswith("**Completed:** "):
                fields["completed_at"] = _parse_time(line[len("**Completed:** "):].strip())

        if "title" not in fields:
            return None
        if fields.get("status") not in STATUS_PIPELINE:
            fields["status"] = "Backlog"
        fields["description"] = "\n".join(description).strip() or fields["title"]
        for key in ("created_at", "updated_at"):
            if fields.get(key) is None:
                fields.pop(key, None)
        return cls(**fields)


# ── Tool arguments ────────────────────────────────────────────────


class ViewBoardArgs(ToolArguments):
    status_filter: Literal[StatusName, "all"] = Field("all", description="Filter tickets by specific status")


class CreateTicketArgs(ToolArguments):
    title: str = Field(min_length=1, max_length=200, description="Ticket title/summary")
    description: str = Field(max_length=5000, description="Detailed ticket description")
    assignee: str | None = Field(None, description="Person assigned to this ticket")
    priority: Literal["low", "medium", "high", "critical"] = Field("medium", description="Ticket priority level")
    tags: list[str] = Field(default_factory=list, description="Optional tags for categorization")


class TicketIdArgs(ToolArguments):
    ticket_id: int = Field(description="ID of the ticket")


class SetStatusArgs(TicketIdArgs):
    status: StatusName = Field(description="New status for the ticket")


# ── Provider ──────────────────────────────────────────────────────


class KanbanProvider(ToolProvider):
    name = "agent-kanban"
    version = "1.0.0"

    def __init__(self, gateway: PersistenceGateway | None = None) -> None:
        self._gateway = gateway or PersistenceGateway(settings.persist_dir)
        self._boards: dict[str, dict[int, KanbanTicket]] = {}
        super().__init__()

    def register_tools(self) -> None:
        self.add_tool("kanban_view_board", "View the current kanban board with all tickets organized by status",
                      self._view_board, ViewBoardArgs)
        self.add_tool("kanban_create_ticket", "Create a new ticket in the kanban board",
                      self._create_ticket, CreateTicketArgs)
        self.add_tool("kanban_read_ticket", "Read detailed information about a specific ticket",
                      self._read_ticket, TicketIdArgs)
        self.add_tool("kanban_progress_ticket", "Move ticket to next status in the workflow pipeline",
                      self._progress_ticket, TicketIdArgs)
        self.add_tool("kanban_set_status", "Set ticket to a specific status directly",
                      self._set_status, SetStatusArgs)

    # ── State ────────────────────────────────────────────────────

    async def board(self, agent_name: str) -> dict[int, KanbanTicket]:
        if agent_name not in self._boards:
            self._boards[agent_name] = await self._load(safe_agent_name(agent_name))
        return self._boards[agent_name]

    async def _load(self, key: str) -> dict[int, KanbanTicket]:
        tickets: dict[int, KanbanTicket] = {}
        for file_name in await self._gateway.list_names(f"{key}/tickets", ".md"):
            prefix = file_name.split("-", 1)[0]
            if not prefix.isdigit():
                continue
            text = await self._gateway.load_text(f"{key}/tickets/{file_name}")
            ticket = KanbanTicket.from_markdown(int(prefix), text or "")
            if ticket is None:
                _logger.warning("Skipping unparseable ticket file %s/%s", key, file_name)
                continue
            tickets[ticket.id] = ticket
        return tickets

    async def _save(self, agent_name: str, ticket: KanbanTicket) -> None:
        key = safe_agent_name(agent_name)
        await self._gateway.save_text(f"{key}/tickets/{ticket.file_name}", ticket.to_markdown())
        await self._gateway.save_text(f"{key}/KANBAN_BOARD.md", self.render_board_file(self._boards[agent_name]))

    async def _ticket(self, agent_name: str, ticket_id: int) -> KanbanTicket:
        ticket = (await self.board(agent_name)).get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket #{ticket_id} not found")
        return ticket

    @staticmethod
    def _by_status(tickets: dict[int, KanbanTicket], status: str) -> list[KanbanTicket]:
        selected = [t for t in tickets.values() if t.status == status]
        return sorted(selected, key=lambda t: (-_PRIORITY_RANK[t.priority], t.id))

    def render_board_file(self, tickets: dict[int, KanbanTicket]) -> str:
        lines = [
            "# Tickets",
            "Tickets can be found with their corresponding ticket number in the `tickets` folder.",
            "",
        ]
        for status in STATUS_PIPELINE:
            lines.append(f"## {status}")
            lines += [t.board_line() for t in self._by_status(tickets, status)]
            lines.append("")
        return "\n".join(lines)

    # ── Tools ────────────────────────────────────────────────────

    async def _view_board(self, args: ViewBoardArgs) -> ToolResult:
        tickets = await self.board(args.agent_name)
        sections = ["**KANBAN BOARD**"]
        for status in STATUS_PIPELINE:
            if args.status_filter not in ("all", status):
                continue
            entries = self._by_status(tickets, status)
            body = "\n".join(t.board_line(with_tags=True) for t in entries) or "_(No tickets)_"
            sections.append(f"## {status}\n{body}")
        return ToolResult.text("\n\n".join(sections))

    async def _create_ticket(self, args: CreateTicketArgs) -> ToolResult:
        tickets = await self.board(args.agent_name)
        ticket = KanbanTicket(
            id=max(tickets, default=0) + 1,
            title=args.title,
            description=args.description,
            priority=TicketPriority(args.priority),
            assignee=args.assignee,
            tags=args.tags,
        )
        tickets[ticket.id] = ticket
        await self._save(args.agent_name, ticket)

        lines = [
            "**Ticket Created Successfully!**",
            "",
            f"**ID:** #{ticket.id}",
            f"**Title:** {ticket.title}",
            f"**Status:** {ticket.status}",
            f"**Priority:** {ticket.priority.value}",
        ]
        if ticket.assignee:
            lines.append(f"**Assignee:** @{ticket.assignee}")
        if ticket.tags:
            lines.append(f"**Tags:** {', '.join(ticket.tags)}")
        lines += [
            f"**Created:** {ticket.created_at.isoformat()}",
            "",
            "Ticket has been added to the Backlog and is ready for work!",
        ]
        return ToolResult.text("\n".join(lines))

    async def _read_ticket(self, args: TicketIdArgs) -> ToolResult:
        ticket = await self._ticket(args.agent_name, args.ticket_id)
        lines = [
            f"**TICKET #{ticket.id}**",
            "",
            f"**Title:** {ticket.title}",
            f"**Status:** {ticket.status}",
            f"**Priority:** {ticket.priority.value}",
        ]
        if ticket.assignee:
            lines.append(f"**Assignee:** @{ticket.assignee}")
        if ticket.tags:
            lines.append(f"**Tags:** {', '.join(ticket.tags)}")
        lines.append(f"**Created:** {ticket.created_at.isoformat()}")
        lines.append(f"**Updated:** {ticket.updated_at.isoformat()}")
        if ticket.completed_at:
            lines.append(f"**Completed:** {ticket.completed_at.isoformat()}")
        lines += ["", "**Description:**", ticket.description]
        return ToolResult.text("\n".join(lines))

    async def _move(self, agent_name: str, ticket: KanbanTicket, status: str, heading: str) -> ToolResult:
        old = ticket.status
        ticket.move_to(status)
        await self._save(agent_name, ticket)

        lines = [heading, "", f"**Title:** {ticket.title}", f"**Status:** {old} -> {status}"]
        if ticket.completed_at:
            lines.append(f"**Completed:** {ticket.completed_at.isoformat()}")
        lines.append(f"**Updated:** {ticket.updated_at.isoformat()}")
        return ToolResult.text("\n".join(lines))

    async def _progress_ticket(self, args: TicketIdArgs) -> ToolResult:
        ticket = await self._ticket(args.agent_name, args.ticket_id)
        index = STATUS_PIPELINE.index(ticket.status)
        if index == len(STATUS_PIPELINE) - 1:
            return ToolResult.text(
                f"Ticket #{ticket.id} is already at the final status ({ticket.status})"
            )
        return await self._move(
            args.agent_name, ticket, STATUS_PIPELINE[index + 1], f"**Ticket #{ticket.id} Progressed!**"
        )

    async def _set_status(self, args: SetStatusArgs) -> ToolResult:
        ticket = await self._ticket(args.agent_name, args.ticket_id)
        return await self._move(
            args.agent_name, ticket, args.status, f"**Ticket #{ticket.id} Status Updated!**"
        )
