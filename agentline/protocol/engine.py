"""ProtocolEngine — runs one ToolProvider over a line-delimited JSON-RPC stream.

Lines are handled strictly one at a time: a request's handler (including
any persistence it triggers) completes before the next line is read.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Protocol

from agentline.exceptions import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    InvalidParamsError,
    InvalidRequestError,
    ParseError,
    ProtocolError,
)
from agentline.protocol.codec import MessageCodec
from agentline.protocol.messages import PROTOCOL_VERSION, JsonRpcMessage
from agentline.protocol.provider import ToolProvider

_logger = logging.getLogger(__name__)

# Lines can carry whole notepads, well above asyncio's 64 KiB default.
_STREAM_LIMIT = 16 * 1024 * 1024


class LineWriter(Protocol):
    def write(self, data: bytes) -> None: ...
    async def drain(self) -> None: ...
    def close(self) -> None: ...


class _StdoutWriter:
    """Blocking writer over the process's stdout."""

    def __init__(self) -> None:
        self._out = sys.stdout.buffer

    def write(self, data: bytes) -> None:
        self._out.write(data)
        self._out.flush()

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self._out.flush()


class ProtocolEngine:
    """Decodes inbound lines, dispatches them to the provider, and writes
    exactly one response per request id."""

    def __init__(self, provider: ToolProvider, codec: MessageCodec | None = None) -> None:
        self.provider = provider
        self._codec = codec or MessageCodec()
        self._reader: asyncio.StreamReader | None = None
        self._writer: LineWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._shutting_down = False

    @property
    def running(self) -> bool:
        return self._read_task is not None and not self._read_task.done()

    async def start(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: LineWriter | None = None,
    ) -> None:
        """Load provider state, bind the streams and serve until EOF or shutdown."""
        await self.provider.on_startup()

        if reader is None:
            reader = await self._stdin_reader()
        self._reader = reader
        self._writer = writer or _StdoutWriter()

        _logger.info("%s %s serving on stdio", self.provider.name, self.provider.version)
        self._read_task = asyncio.create_task(self._read_loop())
        try:
            await self._read_task
        except asyncio.CancelledError:
            if not self._shutting_down:
                raise
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop reading and close the output. Safe to call more than once."""
        if self._shutting_down:
            return
        self._shutting_down = True
        _logger.info("Shutting down %s", self.provider.name)

        task = self._read_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._writer is not None:
            self._writer.close()

    @staticmethod
    async def _stdin_reader() -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=_STREAM_LIMIT)
        await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
        return reader

    async def _read_loop(self) -> None:
        assert self._reader is not None
        while not self._shutting_down:
            try:
                line = await self._reader.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                _logger.warning("Dropping oversized input line: %s", e)
                await self._send(
                    JsonRpcMessage.err("unknown", PARSE_ERROR, "Parse error: Line too long").to_wire()
                )
                continue
            if not line:
                _logger.info("Input closed")
                break
            response = await self.handle_line(line)
            if response is not None:
                await self._send(response)

    async def _send(self, wire: dict[str, Any]) -> None:
        if self._writer is None or self._shutting_down:
            return
        self._writer.write(self._codec.encode(wire))
        await self._writer.drain()

    # ── Dispatch ─────────────────────────────────────────────────

    async def handle_line(self, line: str | bytes) -> dict[str, Any] | None:
        """Process one inbound line and return the wire response, if any."""
        if not line.strip():
            return None
        try:
            message = self._codec.decode(line)
        except InvalidRequestError as e:
            _logger.warning("Invalid envelope: %s", e.data)
            request_id = e.request_id if e.request_id is not None else "unknown"
            return JsonRpcMessage.err(request_id, e.code, e.message).to_wire()
        except ParseError as e:
            _logger.warning("Undecodable input: %s", e.data)
            return JsonRpcMessage.err("unknown", e.code, e.message).to_wire()

        reply = await self.handle_message(message)
        return reply.to_wire() if reply is not None else None

    async def handle_message(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        if message.is_request:
            return await self._handle_request(message)
        if message.is_notification:
            await self._handle_notification(message)
        elif message.is_response:
            _logger.debug("Ignoring response for id %s", message.id)
        else:
            _logger.warning("Dropping unclassifiable message")
        return None

    async def _handle_request(self, request: JsonRpcMessage) -> JsonRpcMessage:
        method = request.method
        params = request.params or {}
        _logger.debug("Handling request %s (id %s)", method, request.id)

        handlers = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
            "prompts/list": self._prompts_list,
            "prompts/get": self._prompts_get,
        }

        try:
            handler = handlers.get(method)
            if handler is None:
                result = await self.provider.handle_custom_method(request)
            else:
                result = await handler(params)
            return JsonRpcMessage.success(request.id, result)
        except ProtocolError as e:
            _logger.warning("Request %s failed: %s", method, e.message)
            return JsonRpcMessage.err(request.id, e.code, e.message, e.data)
        except Exception as e:
            _logger.exception("Request %s failed", method)
            return JsonRpcMessage.err(request.id, INTERNAL_ERROR, str(e))

    async def _handle_notification(self, notification: JsonRpcMessage) -> None:
        method = notification.method
        params = notification.params or {}
        _logger.debug("Handling notification %s", method)
        try:
            if method in ("initialized", "notifications/initialized"):
                await self.provider.on_initialized()
            elif method == "notifications/cancelled":
                await self.provider.on_cancelled(params.get("requestId"))
            else:
                await self.provider.handle_custom_notification(notification)
        except Exception:
            _logger.exception("Notification %s failed", method)

    # ── Built-in methods ─────────────────────────────────────────

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        version = params.get("protocolVersion")
        _logger.info("Initialize from %s (protocol %s)", params.get("clientInfo"), version)
        if version != PROTOCOL_VERSION:
            raise InvalidParamsError(f"Unsupported protocol version: {version}")
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": self.provider.name, "version": self.provider.version},
            "capabilities": self.provider.capabilities,
        }

    async def _tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        tools = await self.provider.list_tools()
        return {"tools": [t.to_wire() for t in tools]}

    async def _tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _required_str(params, "name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("arguments must be an object")
        result = await self.provider.call_tool(name, arguments)
        return result.to_wire()

    async def _resources_list(self, params: dict[str, Any]) -> dict[str, Any]:
        resources = await self.provider.list_resources()
        return {"resources": [r.to_wire() for r in resources]}

    async def _resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = _required_str(params, "uri")
        content = await self.provider.read_resource(uri)
        return {"contents": [content.to_wire()]}

    async def _prompts_list(self, params: dict[str, Any]) -> dict[str, Any]:
        prompts = await self.provider.list_prompts()
        return {"prompts": [p.to_wire() for p in prompts]}

    async def _prompts_get(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _required_str(params, "name")
        arguments = params.get("arguments") or {}
        messages = await self.provider.get_prompt(name, arguments)
        return {"messages": [m.to_wire() for m in messages]}


def _required_str(params: dict[str, Any], key: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidParamsError(f"Missing required parameter: {key}")
    return value
