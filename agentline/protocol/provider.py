"""ToolProvider — the contract every server plugs into the protocol engine.

A provider owns a ToolRegistry plus optional resources and prompts. The
engine never calls tool handlers directly; it goes through ``call_tool`` so
the ``agentName`` rule holds for every provider.
"""

from __future__ import annotations

import logging
from typing import Any

from agentline.exceptions import InvalidParamsError, MethodNotFoundError, ServerError
from agentline.protocol.messages import (
    Content,
    JsonRpcMessage,
    Prompt,
    PromptMessage,
    Resource,
    ToolResult,
)
from agentline.tools.registry import ToolHandler, ToolRegistry
from agentline.tools.schema import ToolArguments, ToolSchema
from agentline.types import RequestId

_logger = logging.getLogger(__name__)


class ToolProvider:
    """Base class for servers. Subclasses register their tools in
    ``register_tools`` and override the resource/prompt hooks they need."""

    name: str = "agentline"
    version: str = "0.1.0"

    def __init__(self) -> None:
        self.tools = ToolRegistry()
        self.register_tools()

    @property
    def capabilities(self) -> dict[str, Any]:
        return {
            "tools": {},
            "resources": {"subscribe": False, "listChanged": False},
            "prompts": {},
        }

    def register_tools(self) -> None:
        """Populate ``self.tools``. Called once from the constructor."""

    def add_tool(
        self,
        name: str,
        description: str,
        handler: ToolHandler,
        arguments: type[ToolArguments] = ToolArguments,
    ) -> None:
        self.tools.register(
            ToolSchema(name=name, description=description, arguments=arguments),
            handler,
        )

    # ── Tools ────────────────────────────────────────────────────

    async def list_tools(self) -> list[ToolSchema]:
        return self.tools.list_tools()

    async def call_tool(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        agent_name = arguments.get("agentName")
        if not isinstance(agent_name, str) or not agent_name.strip():
            raise InvalidParamsError("agentName parameter is required")
        _logger.debug("Tool call %s from %s", tool_name, agent_name)
        return await self.tools.execute(tool_name, arguments)

    # ── Resources & prompts ──────────────────────────────────────

    async def list_resources(self) -> list[Resource]:
        return []

    async def read_resource(self, uri: str) -> Content:
        raise ServerError(f"Resource not found: {uri}")

    async def list_prompts(self) -> list[Prompt]:
        return []

    async def get_prompt(self, name: str, arguments: dict[str, Any]) -> list[PromptMessage]:
        raise ServerError(f"Prompt not found: {name}")

    # ── Lifecycle hooks ──────────────────────────────────────────

    async def on_startup(self) -> None:
        """Load persisted state before the first line is read."""

    async def on_initialized(self) -> None:
        _logger.info("%s initialized", self.name)

    async def on_cancelled(self, request_id: RequestId | None) -> None:
        _logger.info("Request cancelled: %s", request_id)

    async def handle_custom_method(self, request: JsonRpcMessage) -> Any:
        raise MethodNotFoundError(f"Method not found: {request.method}")

    async def handle_custom_notification(self, notification: JsonRpcMessage) -> None:
        _logger.debug("Unhandled notification: %s", notification.method)
