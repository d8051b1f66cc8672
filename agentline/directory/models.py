"""Directory records — agents, directory messages, emails and attachments.

Field names match the persisted ``company_directory.json`` layout.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field

from agentline.types import AgentStatus, MessageType, Priority, now

_WHITESPACE = re.compile(r"\s+")


# ── Messages ──────────────────────────────────────────────────────


class DirectoryMessage(BaseModel):
    """A short note queued for one recipient."""

    id: str
    sender_id: str
    sender_name: str
    recipient_id: str
    recipient_name: str
    content: str
    priority: Priority = Priority.NORMAL
    message_type: MessageType = MessageType.INFO
    sent_at: datetime = Field(default_factory=now)
    is_read: bool = False
    read_at: datetime | None = None

    def mark_read(self) -> bool:
        """Returns False when the message was already read."""
        if self.is_read:
            return False
        self.is_read = True
        self.read_at = now()
        return True

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class EmailAttachment(BaseModel):
    filename: str
    content: str
    mime_type: str = "text/plain"

    @computed_field
    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def human_readable_size(self) -> str:
        if self.size < 1024:
            return f"{self.size} B"
        if self.size < 1024 * 1024:
            return f"{self.size / 1024:.1f} KB"
        return f"{self.size / (1024 * 1024):.1f} MB"


class EmailMessage(BaseModel):
    """One email. Every inbox holds its own copy."""

    id: str
    sender_id: str
    sender_name: str
    to_recipients: list[str] = Field(default_factory=list)
    cc_recipients: list[str] = Field(default_factory=list)
    bcc_recipients: list[str] = Field(default_factory=list)
    subject: str
    body: str
    priority: Priority = Priority.NORMAL
    sent_at: datetime = Field(default_factory=now)
    is_read: bool = False
    read_at: datetime | None = None
    reply_to_id: str | None = None
    forward_from_id: str | None = None
    attachments: list[EmailAttachment] = Field(default_factory=list)
    thread_id: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.thread_id:
            self.thread_id = self.id

    @property
    def is_reply(self) -> bool:
        return self.reply_to_id is not None

    @property
    def is_forwarded(self) -> bool:
        return self.forward_from_id is not None

    @property
    def preview(self) -> str:
        text = _WHITESPACE.sub(" ", self.body).strip()
        return text[:100] + "..." if len(text) > 100 else text

    def mark_read(self) -> bool:
        if self.is_read:
            return False
        self.is_read = True
        self.read_at = now()
        return True

    def summary(self) -> dict[str, Any]:
        """Header-only view used by inbox listings."""
        data: dict[str, Any] = {
            "id": self.id,
            "subject": self.subject,
            "sender_name": self.sender_name,
            "sender_id": self.sender_id,
            "to_recipients": self.to_recipients,
            "cc_recipients": self.cc_recipients,
            "priority": self.priority.value,
            "sent_at": self.sent_at.isoformat(),
            "is_read": self.is_read,
            "preview": self.preview,
            "thread_id": self.thread_id,
            "is_reply": self.is_reply,
            "is_forwarded": self.is_forwarded,
            "attachment_count": len(self.attachments),
        }
        if self.read_at is not None:
            data["read_at"] = self.read_at.isoformat()
        return data

    def detail(self) -> dict[str, Any]:
        """Full view returned when an email is opened."""
        data: dict[str, Any] = {
            "email_id": self.id,
            "subject": self.subject,
            "sender_name": self.sender_name,
            "sender_id": self.sender_id,
            "to_recipients": self.to_recipients,
            "cc_recipients": self.cc_recipients,
            "bcc_recipients": self.bcc_recipients,
            "body": self.body,
            "priority": self.priority.value,
            "sent_at": self.sent_at.isoformat(),
            "is_read": self.is_read,
            "thread_id": self.thread_id,
            "is_reply": self.is_reply,
            "is_forwarded": self.is_forwarded,
            "attachments": [
                {
                    "filename": a.filename,
                    "mime_type": a.mime_type,
                    "size": a.size,
                    "human_readable_size": a.human_readable_size,
                }
                for a in self.attachments
            ],
        }
        if self.read_at is not None:
            data["read_at"] = self.read_at.isoformat()
        if self.reply_to_id is not None:
            data["reply_to_id"] = self.reply_to_id
        if self.forward_from_id is not None:
            data["forward_from_id"] = self.forward_from_id
        return data

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ── Agents ────────────────────────────────────────────────────────


class AgentIdentity(BaseModel):
    """A registered agent together with the queues it owns."""

    id: str
    name: str
    role: str
    capabilities: list[str] = Field(default_factory=list)
    status: AgentStatus = AgentStatus.ACTIVE
    description: str = ""
    registered_at: datetime = Field(default_factory=now)
    last_seen: datetime = Field(default_factory=now)
    session_name: str
    status_message: str = ""
    messages: list[DirectoryMessage] = Field(default_factory=list)
    email_inbox: list[EmailMessage] = Field(default_factory=list)

    @property
    def unread_email_count(self) -> int:
        return sum(1 for e in self.email_inbox if not e.is_read)

    def find_email(self, email_id: str) -> EmailMessage | None:
        return next((e for e in self.email_inbox if e.id == email_id), None)

    def find_message(self, message_id: str) -> DirectoryMessage | None:
        return next((m for m in self.messages if m.id == message_id), None)

    def to_public(self) -> dict[str, Any]:
        """Directory listing view; queued messages and mail stay private."""
        return self.model_dump(mode="json", exclude={"messages", "email_inbox"})

    def to_json(self) -> dict[str, Any]:
        return {
            **self.model_dump(mode="json", exclude={"messages", "email_inbox"}),
            "messages": [m.to_json() for m in self.messages],
            "email_inbox": [e.to_json() for e in self.email_inbox],
        }
