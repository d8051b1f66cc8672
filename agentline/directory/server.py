"""Company directory server — registration, discovery, messaging and email.

Tool results are JSON text. Domain failures (unregistered caller, unknown
email, full directory) raise ServerError subclasses which the engine turns
into JSON-RPC error responses.
"""

from __future__ import annotations

from typing import Any, Literal

import orjson
from pydantic import BaseModel, Field

from agentline.config import settings
from agentline.directory.mailbox import MailboxSystem
from agentline.directory.models import EmailAttachment
from agentline.directory.registry import AgentRegistry
from agentline.exceptions import ServerError
from agentline.protocol.messages import (
    Content,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    ToolResult,
)
from agentline.protocol.provider import ToolProvider
from agentline.storage.gateway import PersistenceGateway
from agentline.tools.schema import ToolArguments
from agentline.types import now

StatusName = Literal["active", "busy", "idle", "offline"]
StatusFilter = Literal["active", "busy", "idle", "offline", "all"]
PriorityName = Literal["low", "normal", "high", "urgent"]
MessageTypeName = Literal["info", "request", "response", "task", "alert"]


# ── Tool arguments ────────────────────────────────────────────────


class RegisterAgentArgs(ToolArguments):
    name: str = Field(max_length=100, description="Agent display name")
    role: str = Field(max_length=100, description="Agent role/specialization")
    capabilities: list[str] = Field(default_factory=list, description="List of agent capabilities/skills")
    status: StatusName = Field("active", description="Current agent status")
    description: str = Field("", max_length=500, description="Brief description of the agent")


class ListAgentsArgs(ToolArguments):
    status_filter: StatusFilter = Field("all", description="Filter agents by status")
    role_filter: str | None = Field(None, description="Filter agents by role (partial match)")
    capability_filter: str | None = Field(None, description="Filter agents by capability (partial match)")


class FindAgentArgs(ToolArguments):
    agent_id: str | None = Field(None, description="Agent ID to find")
    display_name: str | None = Field(
        None, alias="agent_name", description="Agent display name to find (case-insensitive)"
    )


class UpdateStatusArgs(ToolArguments):
    status: StatusName = Field(description="New status")
    message: str = Field("", max_length=200, description="Optional status message")


class SendMessageArgs(ToolArguments):
    recipient_id: str | None = Field(None, description="Recipient agent ID")
    recipient_name: str | None = Field(None, description="Recipient agent name")
    message: str = Field(max_length=2000, description="Message content")
    priority: PriorityName = Field("normal", description="Message priority")
    message_type: MessageTypeName = Field("info", description="Type of message")


class GetMessagesArgs(ToolArguments):
    status_filter: Literal["unread", "read", "all"] = Field("unread", description="Filter messages by read status")
    priority_filter: PriorityName | None = Field(None, description="Filter messages by priority")
    limit: int = Field(50, ge=1, le=100, description="Maximum number of messages to return")


class MarkMessageReadArgs(ToolArguments):
    message_id: str = Field(description="ID of the message to mark as read")


class UnregisterArgs(ToolArguments):
    reason: str = Field("Agent requested removal", description="Reason for removal")


class AttachmentArgs(BaseModel):
    filename: str
    content: str
    mime_type: str = "text/plain"


class SendEmailArgs(ToolArguments):
    to: list[str] = Field(min_length=1, description="Recipient agent IDs, session names or display names")
    cc: list[str] = Field(default_factory=list, description="CC recipients")
    bcc: list[str] = Field(default_factory=list, description="BCC recipients")
    subject: str = Field(max_length=200, description="Email subject line")
    body: str = Field(max_length=10000, description="Email body")
    priority: PriorityName = Field("normal", description="Email priority")
    attachments: list[AttachmentArgs] = Field(default_factory=list, description="File attachments")


class CheckInboxArgs(ToolArguments):
    mark_as_read: bool = Field(False, description="Mark the returned emails as read")
    include_read: bool = Field(False, description="Include already-read emails")
    limit: int = Field(20, ge=1, le=100, description="Maximum number of emails to return")


class RecipientsArgs(ToolArguments):
    status_filter: StatusFilter = Field("active", description="Filter recipients by status")
    role_filter: str | None = Field(None, description="Filter recipients by role (partial match)")
    capability_filter: str | None = Field(None, description="Filter recipients by capability (partial match)")
    include_self: bool = Field(False, description="Include this agent in the results")


class EmailIdArgs(ToolArguments):
    email_id: str = Field(description="Email message ID")


class GetEmailArgs(EmailIdArgs):
    mark_as_read: bool = Field(True, description="Mark the email as read")


class ReplyArgs(EmailIdArgs):
    body: str = Field(max_length=10000, description="Reply body")
    include_original: bool = Field(True, description="Quote the original message")
    priority: PriorityName = Field("normal", description="Reply priority")


class ForwardArgs(EmailIdArgs):
    to: list[str] = Field(min_length=1, description="Recipients to forward to")
    cc: list[str] = Field(default_factory=list, description="CC recipients")
    bcc: list[str] = Field(default_factory=list, description="BCC recipients")
    forward_note: str = Field("", max_length=1000, description="Note to add above the forwarded message")


class DeleteEmailArgs(EmailIdArgs):
    permanent: bool = Field(False, description="Delete permanently (accepted, no trash exists)")


# ── Provider ──────────────────────────────────────────────────────


class DirectoryProvider(ToolProvider):
    """Company directory exposed over the tool protocol."""

    name = "company-directory"
    version = "1.0.0"

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        max_agents: int | None = None,
    ) -> None:
        self.registry = AgentRegistry(
            gateway or PersistenceGateway(settings.persist_dir),
            max_agents=max_agents,
        )
        self.mailbox = MailboxSystem(self.registry)
        super().__init__()

    def register_tools(self) -> None:
        self.add_tool("directory_register_agent", "Register this agent in the company directory",
                      self._register_agent, RegisterAgentArgs)
        self.add_tool("directory_list_agents", "Get list of all registered agents",
                      self._list_agents, ListAgentsArgs)
        self.add_tool("directory_find_agent", "Find specific agent by ID or name",
                      self._find_agent, FindAgentArgs)
        self.add_tool("directory_update_status", "Update this agent's status in the directory",
                      self._update_status, UpdateStatusArgs)
        self.add_tool("directory_send_message", "Send message to another agent via directory",
                      self._send_message, SendMessageArgs)
        self.add_tool("directory_get_messages", "Get messages sent to this agent",
                      self._get_messages, GetMessagesArgs)
        self.add_tool("directory_mark_message_read", "Mark a message as read",
                      self._mark_message_read, MarkMessageReadArgs)
        self.add_tool("directory_unregister_agent", "Remove this agent from the directory",
                      self._unregister_agent, UnregisterArgs)
        self.add_tool("directory_send_email", "Send an email-like message to one or more agents",
                      self._send_email, SendEmailArgs)
        self.add_tool("directory_check_inbox", "Check this agent's inbox for new messages",
                      self._check_inbox, CheckInboxArgs)
        self.add_tool("directory_get_available_recipients", "Get list of agents available to receive messages",
                      self._available_recipients, RecipientsArgs)
        self.add_tool("directory_get_email", "Get a specific email message by ID",
                      self._get_email, GetEmailArgs)
        self.add_tool("directory_reply_to_email", "Reply to a specific email message",
                      self._reply_to_email, ReplyArgs)
        self.add_tool("directory_forward_email", "Forward an email message to other agents",
                      self._forward_email, ForwardArgs)
        self.add_tool("directory_delete_email", "Delete an email message from inbox",
                      self._delete_email, DeleteEmailArgs)
        self.add_tool("directory_get_inbox_stats", "Get inbox statistics for this agent",
                      self._inbox_stats, ToolArguments)

    async def on_startup(self) -> None:
        await self.registry.load()

    # ── Agents ───────────────────────────────────────────────────

    async def _register_agent(self, args: RegisterAgentArgs) -> ToolResult:
        agent = await self.registry.register(
            args.agent_name,
            name=args.name,
            role=args.role,
            capabilities=args.capabilities,
            status=args.status,
            description=args.description,
        )
        return _ok({
            "agent_id": agent.id,
            "registered_at": agent.registered_at.isoformat(),
            "message": "Agent registered successfully in company directory",
        })

    async def _list_agents(self, args: ListAgentsArgs) -> ToolResult:
        agents = self.registry.list(args.status_filter, args.role_filter, args.capability_filter)
        filters: dict[str, Any] = {"status": args.status_filter}
        if args.role_filter is not None:
            filters["role"] = args.role_filter
        if args.capability_filter is not None:
            filters["capability"] = args.capability_filter
        return _ok({
            "total_agents": len(agents),
            "agents": [a.to_public() for a in agents],
            "filters_applied": filters,
        })

    async def _find_agent(self, args: FindAgentArgs) -> ToolResult:
        agent = self.registry.find(agent_id=args.agent_id, name=args.display_name)
        if agent is None:
            return ToolResult.payload({"success": False, "found": False, "message": "Agent not found"})
        return _ok({"found": True, "agent": agent.to_public()})

    async def _update_status(self, args: UpdateStatusArgs) -> ToolResult:
        agent = await self.registry.update_status(args.agent_name, args.status, args.message)
        return _ok({
            "agent_id": agent.id,
            "new_status": agent.status.value,
            "message": "Status updated successfully",
        })

    async def _unregister_agent(self, args: UnregisterArgs) -> ToolResult:
        agent = await self.registry.unregister(args.agent_name, args.reason)
        return _ok({
            "removed_agent": agent.name,
            "reason": args.reason,
            "message": "Agent successfully removed from directory",
        })

    async def _available_recipients(self, args: RecipientsArgs) -> ToolResult:
        recipients = self.registry.available_recipients(
            args.agent_name,
            status=args.status_filter,
            role=args.role_filter,
            capability=args.capability_filter,
            include_self=args.include_self,
        )
        return _ok({
            "total_recipients": len(recipients),
            "recipients": [a.to_public() for a in recipients],
        })

    # ── Directory messages ───────────────────────────────────────

    async def _send_message(self, args: SendMessageArgs) -> ToolResult:
        result = await self.mailbox.send_directory_message(
            args.agent_name,
            args.message,
            recipient_id=args.recipient_id,
            recipient_name=args.recipient_name,
            priority=args.priority,
            message_type=args.message_type,
        )
        return _ok(result)

    async def _get_messages(self, args: GetMessagesArgs) -> ToolResult:
        messages = self.mailbox.get_messages(
            args.agent_name, args.status_filter, args.priority_filter, args.limit
        )
        return _ok({
            "total_messages": len(messages),
            "messages": [m.to_json() for m in messages],
        })

    async def _mark_message_read(self, args: MarkMessageReadArgs) -> ToolResult:
        message = await self.mailbox.mark_message_read(args.agent_name, args.message_id)
        return _ok({
            "message_id": message.id,
            "message": "Message marked as read",
        })

    # ── Email ────────────────────────────────────────────────────

    async def _send_email(self, args: SendEmailArgs) -> ToolResult:
        result = await self.mailbox.send_email(
            args.agent_name,
            to=args.to,
            cc=args.cc,
            bcc=args.bcc,
            subject=args.subject,
            body=args.body,
            priority=args.priority,
            attachments=[
                EmailAttachment(filename=a.filename, content=a.content, mime_type=a.mime_type)
                for a in args.attachments
            ],
        )
        return _ok(result)

    async def _check_inbox(self, args: CheckInboxArgs) -> ToolResult:
        result = await self.mailbox.check_inbox(
            args.agent_name, args.mark_as_read, args.include_read, args.limit
        )
        return _ok(result)

    async def _get_email(self, args: GetEmailArgs) -> ToolResult:
        email = await self.mailbox.get_email(args.agent_name, args.email_id, args.mark_as_read)
        return _ok(email.detail())

    async def _reply_to_email(self, args: ReplyArgs) -> ToolResult:
        result = await self.mailbox.reply_to_email(
            args.agent_name, args.email_id, args.body, args.include_original, args.priority
        )
        return _ok(result)

    async def _forward_email(self, args: ForwardArgs) -> ToolResult:
        result = await self.mailbox.forward_email(
            args.agent_name, args.email_id, args.to, args.cc, args.bcc, args.forward_note
        )
        return _ok(result)

    async def _delete_email(self, args: DeleteEmailArgs) -> ToolResult:
        result = await self.mailbox.delete_email(args.agent_name, args.email_id, args.permanent)
        return _ok(result)

    async def _inbox_stats(self, args: ToolArguments) -> ToolResult:
        return _ok(self.mailbox.inbox_stats(args.agent_name))

    # ── Resources & prompts ──────────────────────────────────────

    async def list_resources(self) -> list[Resource]:
        return [
            Resource(
                uri="directory://company/agents",
                name="Company Agent Directory",
                description="Complete listing of all registered agents",
                mime_type="application/json",
            ),
            Resource(
                uri="directory://company/active-agents",
                name="Active Agents",
                description="Currently active agents only",
                mime_type="application/json",
            ),
        ]

    async def read_resource(self, uri: str) -> Content:
        if uri == "directory://company/agents":
            agents = self.registry.list()
            data = {
                "agents": [a.to_public() for a in agents],
                "total_count": len(agents),
                "last_updated": now().isoformat(),
            }
        elif uri == "directory://company/active-agents":
            active = self.registry.list(status="active")
            data = {
                "active_agents": [a.to_public() for a in active],
                "active_count": len(active),
                "last_updated": now().isoformat(),
            }
        else:
            raise ServerError(f"Unknown resource: {uri}")
        return Content(text=orjson.dumps(data).decode(), mime_type="application/json", uri=uri)

    async def list_prompts(self) -> list[Prompt]:
        return [
            Prompt(
                name="agent_status_report",
                description="Generate a comprehensive status report for all agents",
                arguments=[
                    PromptArgument(
                        name="format",
                        description="Report format (summary, detailed, json)",
                        required=False,
                    )
                ],
            )
        ]

    async def get_prompt(self, name: str, arguments: dict[str, Any]) -> list[PromptMessage]:
        if name != "agent_status_report":
            raise ServerError(f"Unknown prompt: {name}")
        return [PromptMessage.user(self.status_report(arguments.get("format") or "summary"))]

    def status_report(self, fmt: str = "summary") -> str:
        agents = self.registry.list()
        counts = {s: sum(1 for a in agents if a.status.value == s) for s in ("active", "busy", "idle", "offline")}

        if fmt == "json":
            return orjson.dumps({
                "total_agents": len(agents),
                "active_agents": counts["active"],
                "agents": [a.to_public() for a in agents],
            }).decode()

        lines = [
            "Company Directory Summary",
            "=========================",
            f"Total Agents: {len(agents)}",
            f"Active: {counts['active']}",
            f"Busy: {counts['busy']}",
        ]
        if fmt == "detailed":
            lines += [f"Idle: {counts['idle']}", f"Offline: {counts['offline']}", ""]
            for a in agents:
                line = f"- {a.name} ({a.role}) [{a.status.value}]"
                if a.status_message:
                    line += f": {a.status_message}"
                lines.append(line)
        return "\n".join(lines) + "\n"


def _ok(payload: dict[str, Any]) -> ToolResult:
    return ToolResult.payload({"success": True, **payload})
