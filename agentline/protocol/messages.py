"""Protocol data models — JSON-RPC 2.0 envelopes plus the MCP payloads
servers exchange over them (tools, resources, prompts, content blocks).
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import BaseModel, Field

from agentline.types import RequestId

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"


# ── JSON-RPC 2.0 ─────────────────────────────────────────────


class JsonRpcMessage(BaseModel):
    """One JSON-RPC envelope.

    The same model carries requests, notifications and responses; which one
    it is follows from the presence of ``method`` and ``id``.
    """

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId | None = None
    method: str | None = None
    params: dict[str, Any] | None = None
    result: Any = None
    error: dict[str, Any] | None = None

    @property
    def is_request(self) -> bool:
        return self.method is not None and self.id is not None

    @property
    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    @property
    def is_response(self) -> bool:
        return self.method is None and self.id is not None

    @classmethod
    def request(cls, id: RequestId, method: str, params: dict | None = None) -> JsonRpcMessage:
        return cls(id=id, method=method, params=params)

    @classmethod
    def notification(cls, method: str, params: dict | None = None) -> JsonRpcMessage:
        return cls(method=method, params=params)

    @classmethod
    def success(cls, id: RequestId, result: Any) -> JsonRpcMessage:
        return cls(id=id, result=result)

    @classmethod
    def err(cls, id: RequestId, code: int, message: str, data: Any = None) -> JsonRpcMessage:
        error: dict[str, Any] = {"code": code, "message": message}
        if data is not None:
            error["data"] = data
        return cls(id=id, error=error)

    def to_wire(self) -> dict[str, Any]:
        """Envelope dict with absent members left out."""
        wire: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            wire["id"] = self.id
        if self.method is not None:
            wire["method"] = self.method
        if self.params is not None:
            wire["params"] = self.params
        if self.error is not None:
            wire["error"] = self.error
        elif self.method is None:
            wire["result"] = self.result
        return wire


# ── Content ──────────────────────────────────────────────────


class Content(BaseModel):
    """A content block inside tool results and resource reads."""

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    uri: str | None = None

    model_config = {"populate_by_name": True}

    @classmethod
    def of_text(cls, text: str) -> Content:
        return cls(type="text", text=text)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolResult(BaseModel):
    """What a tools/call returns."""

    content: list[Content] = Field(default_factory=list)
    is_error: bool | None = Field(default=None, alias="isError")

    model_config = {"populate_by_name": True}

    @classmethod
    def text(cls, text: str) -> ToolResult:
        return cls(content=[Content.of_text(text)])

    @classmethod
    def payload(cls, payload: Any) -> ToolResult:
        """Wrap a JSON-serializable payload as a single text block."""
        return cls.text(orjson.dumps(payload).decode())

    @property
    def first_text(self) -> str:
        return next((c.text for c in self.content if c.text is not None), "")

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"content": [c.to_wire() for c in self.content]}
        if self.is_error is not None:
            wire["isError"] = self.is_error
        return wire


# ── Resources & prompts ──────────────────────────────────────


class Resource(BaseModel):
    """A URI-addressable readable unit of data."""

    uri: str
    name: str
    description: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")

    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PromptArgument(BaseModel):
    name: str
    description: str | None = None
    required: bool | None = None


class Prompt(BaseModel):
    """A named prompt template a server offers."""

    name: str
    description: str | None = None
    arguments: list[PromptArgument] | None = None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class PromptMessage(BaseModel):
    """One rendered message of a prompt."""

    role: str = "user"
    content: Content

    @classmethod
    def user(cls, text: str) -> PromptMessage:
        return cls(role="user", content=Content.of_text(text))

    def to_wire(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content.to_wire()}
