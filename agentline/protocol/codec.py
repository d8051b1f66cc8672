"""MessageCodec — one JSON-RPC envelope per newline-delimited UTF-8 line."""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import ValidationError

from agentline.exceptions import InvalidRequestError, ParseError
from agentline.protocol.messages import JsonRpcMessage


def _request_id(data: dict[str, Any]) -> int | str | None:
    value = data.get("id")
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    return value


class MessageCodec:
    """Turns wire lines into envelopes and back.

    A line that is not JSON is a ParseError (-32700). JSON that is not a
    single object matching the envelope model is an InvalidRequestError
    (-32600), which keeps the request id when one can be read.
    """

    def decode(self, line: str | bytes) -> JsonRpcMessage:
        try:
            data = orjson.loads(line)
        except orjson.JSONDecodeError as e:
            raise ParseError("Parse error: Invalid JSON", data=str(e)) from e

        if not isinstance(data, dict):
            raise InvalidRequestError(
                "Invalid Request",
                data=f"expected an object, got {type(data).__name__}",
            )

        try:
            return JsonRpcMessage.model_validate(data)
        except ValidationError as e:
            raise InvalidRequestError("Invalid Request", request_id=_request_id(data), data=str(e)) from e

    def encode(self, message: JsonRpcMessage | dict[str, Any]) -> bytes:
        """Serialize to a single line, newline included."""
        wire = message.to_wire() if isinstance(message, JsonRpcMessage) else message
        return orjson.dumps(wire) + b"\n"
