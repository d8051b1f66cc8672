"""Custom exception hierarchy for agentline.

Everything that should reach a client as a JSON-RPC error derives from
ProtocolError and carries the error code the engine puts on the wire.
"""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class AgentlineError(Exception):
    """Base for all agentline errors."""


class ProtocolError(AgentlineError):
    """An error that maps onto a JSON-RPC error object."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, code: int | None = None, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.data = data


class ParseError(ProtocolError):
    """Inbound line is not a decodable JSON-RPC envelope."""

    code = PARSE_ERROR


class InvalidRequestError(ProtocolError):
    """Well-formed JSON that is not a valid JSON-RPC envelope."""

    code = INVALID_REQUEST

    def __init__(self, message: str, request_id: Any = None, data: Any = None) -> None:
        super().__init__(message, data=data)
        self.request_id = request_id


class InvalidParamsError(ProtocolError):
    """Missing or invalid arguments."""

    code = INVALID_PARAMS


class MethodNotFoundError(ProtocolError):
    """No handler for the requested method."""

    code = METHOD_NOT_FOUND


class ToolNotFoundError(MethodNotFoundError):
    """Requested tool does not exist on this server."""


class ServerError(ProtocolError):
    """Domain failure inside a provider (not found, capacity, validation)."""

    code = INTERNAL_ERROR


class AgentNotRegisteredError(ServerError):
    """The calling session has no identity in the directory."""


class RecipientNotFoundError(ServerError):
    """A directory message recipient could not be resolved."""


class DirectoryFullError(ServerError):
    """The directory reached its registration cap."""


class MessageNotFoundError(ServerError):
    """No directory message with the given ID in the caller's queue."""


class EmailNotFoundError(ServerError):
    """No email with the given ID in the caller's inbox."""


class TaskNotFoundError(ServerError):
    """No task with the given ID in the caller's list."""


class TicketNotFoundError(ServerError):
    """No kanban ticket with the given ID on the caller's board."""
