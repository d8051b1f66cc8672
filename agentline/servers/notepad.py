"""Notepad server — one free-text notepad per agent."""

from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import parse_qs, urlparse

from pydantic import Field

from agentline.config import settings
from agentline.exceptions import InvalidParamsError
from agentline.protocol.messages import Content, Resource, ToolResult
from agentline.protocol.provider import ToolProvider
from agentline.storage.gateway import PersistenceGateway
from agentline.tools.schema import ToolArguments
from agentline.types import now, safe_agent_name

_logger = logging.getLogger(__name__)

_WORDS = re.compile(r"\s+")


class ContentArgs(ToolArguments):
    content: str = Field(description="Text content")


class InsertArgs(ContentArgs):
    separator: str = Field("\n", description="Separator placed between new and existing content")


class SearchArgs(ToolArguments):
    query: str = Field(min_length=1, description="Text to search for")
    case_sensitive: bool = Field(False, description="Whether the search is case-sensitive")


def _word_count(text: str) -> int:
    return len([w for w in _WORDS.split(text) if w])


def _file_name(agent_name: str) -> str:
    return f"notepad_{safe_agent_name(agent_name)}.txt"


class NotepadProvider(ToolProvider):
    """Each agent reads and edits only its own notepad."""

    name = "agent-notepad"
    version = "1.0.0"

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        max_size: int | None = None,
    ) -> None:
        self._gateway = gateway or PersistenceGateway(settings.persist_dir)
        self._max_size = max_size if max_size is not None else settings.max_notepad_size
        self._notepads: dict[str, str] = {}
        super().__init__()

    def register_tools(self) -> None:
        self.add_tool("notepad_read", "Read the full content of your notepad", self._read)
        self.add_tool("notepad_write", "Replace the entire notepad content", self._write, ContentArgs)
        self.add_tool("notepad_append", "Append content to the end of your notepad", self._append, InsertArgs)
        self.add_tool("notepad_prepend", "Add content to the beginning of your notepad", self._prepend, InsertArgs)
        self.add_tool("notepad_clear", "Clear all notepad content", self._clear)
        self.add_tool("notepad_search", "Search for text in your notepad", self._search, SearchArgs)
        self.add_tool("notepad_info", "Get information about your notepad (size, line count, etc.)", self._info)

    async def on_startup(self) -> None:
        names = await self._gateway.list_names(suffix=".txt")
        count = sum(1 for n in names if n.startswith("notepad_"))
        _logger.info("Found %d persisted notepad(s)", count)

    # ── State ────────────────────────────────────────────────────

    async def notepad(self, agent_name: str) -> str:
        if agent_name not in self._notepads:
            self._notepads[agent_name] = await self._gateway.load_text(_file_name(agent_name)) or ""
        return self._notepads[agent_name]

    async def _store(self, agent_name: str, content: str) -> None:
        if len(content) > self._max_size:
            raise InvalidParamsError(
                f"Content too large. Maximum size is {self._max_size // 1024}KB."
            )
        self._notepads[agent_name] = content
        await self._gateway.save_text(_file_name(agent_name), content)

    # ── Tools ────────────────────────────────────────────────────

    async def _read(self, args: ToolArguments) -> ToolResult:
        content = await self.notepad(args.agent_name)
        if not content:
            return ToolResult.text("Your notepad is empty.")
        return ToolResult.text(f"Notepad contents:\n\n{content}")

    async def _write(self, args: ContentArgs) -> ToolResult:
        await self._store(args.agent_name, args.content)
        lines = len(args.content.split("\n"))
        return ToolResult.text(
            "Notepad updated successfully.\n"
            f"Size: {len(args.content)} characters, {_word_count(args.content)} words, {lines} lines."
        )

    async def _append(self, args: InsertArgs) -> ToolResult:
        existing = await self.notepad(args.agent_name)
        updated = existing + args.separator + args.content if existing else args.content
        await self._store(args.agent_name, updated)
        return ToolResult.text(
            "Content appended successfully.\n"
            f"Added {len(args.content)} characters to notepad."
        )

    async def _prepend(self, args: InsertArgs) -> ToolResult:
        existing = await self.notepad(args.agent_name)
        updated = args.content + args.separator + existing if existing else args.content
        await self._store(args.agent_name, updated)
        return ToolResult.text(
            "Content prepended successfully.\n"
            f"Added {len(args.content)} characters to the beginning of notepad."
        )

    async def _clear(self, args: ToolArguments) -> ToolResult:
        previous = len(await self.notepad(args.agent_name))
        await self._store(args.agent_name, "")
        return ToolResult.text(f"Notepad cleared successfully.\nRemoved {previous} characters.")

    async def _search(self, args: SearchArgs) -> ToolResult:
        content = await self.notepad(args.agent_name)
        if not content:
            return ToolResult.text("Cannot search: notepad is empty.")

        query = args.query if args.case_sensitive else args.query.lower()
        matches = []
        for number, line in enumerate(content.split("\n"), start=1):
            haystack = line if args.case_sensitive else line.lower()
            if query in haystack:
                matches.append(f"Line {number}: {line}")

        if not matches:
            return ToolResult.text(f'No matches found for "{args.query}" in your notepad.')
        return ToolResult.text(
            f'Found {len(matches)} match(es) for "{args.query}":\n\n' + "\n".join(matches)
        )

    async def _info(self, args: ToolArguments) -> ToolResult:
        content = await self.notepad(args.agent_name)
        if not content:
            return ToolResult.text(
                "Notepad Information:\n"
                "- Status: Empty\n"
                "- Size: 0 characters\n"
                "- Words: 0\n"
                "- Lines: 0"
            )
        lines = content.split("\n")
        non_empty = sum(1 for line in lines if line.strip())
        return ToolResult.text(
            "Notepad Information:\n"
            "- Status: Contains content\n"
            f"- Size: {len(content)} characters\n"
            f"- Words: {_word_count(content)}\n"
            f"- Lines: {len(lines)} ({non_empty} non-empty)\n"
            f"- Agent ID: {args.agent_name}\n"
            f"- Last modified: {now().isoformat()}"
        )

    # ── Resources ────────────────────────────────────────────────

    async def list_resources(self) -> list[Resource]:
        return [
            Resource(
                uri="notepad://notepad?agentName=<agentName>",
                name="Agent Notepad",
                description="Your personal notepad content",
                mime_type="text/plain",
            )
        ]

    async def read_resource(self, uri: str) -> Content:
        query: dict[str, Any] = parse_qs(urlparse(uri).query)
        agent_name = (query.get("agentName") or [""])[0]
        if not agent_name:
            raise InvalidParamsError("Agent name is required")
        content = await self.notepad(agent_name)
        return Content(text=content or "Empty notepad", mime_type="text/plain", uri=uri)
