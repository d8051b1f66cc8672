"""Tool Registry — the table of tools one provider exposes."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from agentline.exceptions import InvalidParamsError, ToolNotFoundError
from agentline.protocol.messages import ToolResult
from agentline.tools.schema import ToolArguments, ToolSchema

_logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], Awaitable[ToolResult]]


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        where = ".".join(str(p) for p in item["loc"]) or "arguments"
        parts.append(f"{where}: {item['msg']}")
    return "; ".join(parts)


class ToolRegistry:
    """Tools registered by name with a schema and an async handler.

    Execution validates the raw arguments against the schema's argument
    model and hands the parsed model to the handler. Handler errors
    propagate to the caller.
    """

    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolSchema, ToolHandler]] = {}

    def register(self, schema: ToolSchema, handler: ToolHandler) -> None:
        self._tools[schema.name] = (schema, handler)

    def unregister(self, tool_name: str) -> None:
        self._tools.pop(tool_name, None)

    def __contains__(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def list_tools(self) -> list[ToolSchema]:
        return [schema for schema, _ in self._tools.values()]

    def parse_arguments(self, tool_name: str, arguments: dict[str, Any]) -> ToolArguments:
        schema, _ = self._entry(tool_name)
        try:
            return schema.arguments.model_validate(arguments)
        except ValidationError as e:
            raise InvalidParamsError(f"Invalid arguments for {tool_name}: {_describe(e)}") from e

    async def execute(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name with the given raw arguments."""
        _, handler = self._entry(tool_name)
        parsed = self.parse_arguments(tool_name, arguments)

        start = time.monotonic()
        try:
            return await handler(parsed)
        finally:
            elapsed = (time.monotonic() - start) * 1000
            _logger.debug("Tool %s finished in %.1fms", tool_name, elapsed)

    def _entry(self, tool_name: str) -> tuple[ToolSchema, ToolHandler]:
        entry = self._tools.get(tool_name)
        if entry is None:
            raise ToolNotFoundError(f"Unknown tool: {tool_name}")
        return entry
