"""Mailbox System — directory messages and email layered on the AgentRegistry.

Every delivered email is an independent deep copy, so reading or deleting
one recipient's copy never touches another inbox.
"""

from __future__ import annotations

import logging
from typing import Any

from agentline.directory.models import (
    AgentIdentity,
    DirectoryMessage,
    EmailAttachment,
    EmailMessage,
)
from agentline.directory.registry import AgentRegistry
from agentline.exceptions import (
    AgentNotRegisteredError,
    EmailNotFoundError,
    InvalidParamsError,
    MessageNotFoundError,
    RecipientNotFoundError,
)
from agentline.types import MessageType, Priority, epoch_millis, new_id, now

_logger = logging.getLogger(__name__)


class MailboxSystem:
    def __init__(self, registry: AgentRegistry) -> None:
        self.registry = registry

    def _sender(self, session_name: str) -> AgentIdentity:
        agent = self.registry.by_session(session_name)
        if agent is None:
            raise AgentNotRegisteredError("Sender not registered in directory")
        return agent

    def _email(self, agent: AgentIdentity, email_id: str) -> EmailMessage:
        email = agent.find_email(email_id)
        if email is None:
            raise EmailNotFoundError("Email message not found")
        return email

    # ── Directory messages ───────────────────────────────────────

    async def send_directory_message(
        self,
        sender_session: str,
        content: str,
        recipient_id: str | None = None,
        recipient_name: str | None = None,
        priority: Priority | str = Priority.NORMAL,
        message_type: MessageType | str = MessageType.INFO,
    ) -> dict[str, Any]:
        sender = self._sender(sender_session)
        if recipient_id is None and recipient_name is None:
            raise InvalidParamsError("Either recipient_id or recipient_name must be provided")
        recipient = self.registry.find(agent_id=recipient_id, name=recipient_name)
        if recipient is None:
            raise RecipientNotFoundError("Recipient not found")

        message = DirectoryMessage(
            id=f"msg_{epoch_millis()}_{new_id()}",
            sender_id=sender.id,
            sender_name=sender.name,
            recipient_id=recipient.id,
            recipient_name=recipient.name,
            content=content,
            priority=Priority(priority),
            message_type=MessageType(message_type),
        )
        recipient.messages.append(message)
        await self.registry.save()
        return {
            "message_id": message.id,
            "sent_to": recipient.name,
            "sent_at": message.sent_at.isoformat(),
        }

    def get_messages(
        self,
        session_name: str,
        status_filter: str = "unread",
        priority: Priority | str | None = None,
        limit: int = 50,
    ) -> list[DirectoryMessage]:
        """Messages in the caller's queue, newest first."""
        agent = self.registry.require(session_name)
        messages = list(agent.messages)
        if status_filter != "all":
            want_read = status_filter == "read"
            messages = [m for m in messages if m.is_read == want_read]
        if priority is not None:
            messages = [m for m in messages if m.priority == Priority(priority)]
        messages.sort(key=lambda m: m.sent_at, reverse=True)
        return messages[:limit]

    async def mark_message_read(self, session_name: str, message_id: str) -> DirectoryMessage:
        """Mark a queued message read. Marking it again changes nothing."""
        agent = self.registry.require(session_name)
        message = agent.find_message(message_id)
        if message is None:
            raise MessageNotFoundError("Message not found")
        if message.mark_read():
            await self.registry.save()
        return message

    # ── Email ────────────────────────────────────────────────────

    def _deliver(self, email: EmailMessage, addresses: list[str]) -> list[str]:
        """Put a copy of ``email`` in each resolvable inbox, once per agent.

        Unresolvable addresses are skipped. Returns recipient display names.
        """
        delivered: list[str] = []
        seen: set[str] = set()
        for address in addresses:
            recipient = self.registry.resolve_address(address)
            if recipient is None:
                _logger.debug("No agent for address %r; skipping", address)
                continue
            if recipient.id in seen:
                continue
            seen.add(recipient.id)
            recipient.email_inbox.append(email.model_copy(deep=True))
            delivered.append(recipient.name)
        return delivered

    async def send_email(
        self,
        sender_session: str,
        to: list[str],
        subject: str,
        body: str,
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        priority: Priority | str = Priority.NORMAL,
        attachments: list[EmailAttachment] | None = None,
    ) -> dict[str, Any]:
        """Deliver a copy to every agent named in ``to``, ``cc`` and ``bcc``.

        Each address resolves on its own, but an agent reached through
        several addresses gets a single copy. ``total_recipients`` still
        counts every address given.
        """
        sender = self._sender(sender_session)
        cc = list(cc or [])
        bcc = list(bcc or [])

        email = EmailMessage(
            id=f"email_{epoch_millis()}_{new_id()}",
            sender_id=sender.id,
            sender_name=sender.name,
            to_recipients=list(to),
            cc_recipients=cc,
            bcc_recipients=bcc,
            subject=subject,
            body=body,
            priority=Priority(priority),
            attachments=list(attachments or []),
        )
        addresses = [*to, *cc, *bcc]
        delivered = self._deliver(email, addresses)
        await self.registry.save()

        _logger.info("Email %s from %s delivered to %d/%d", email.id, sender.name, len(delivered), len(addresses))
        return {
            "email_id": email.id,
            "subject": subject,
            "delivered_to": delivered,
            "total_recipients": len(addresses),
            "successful_deliveries": len(delivered),
            "sent_at": email.sent_at.isoformat(),
            "thread_id": email.thread_id,
        }

    async def check_inbox(
        self,
        session_name: str,
        mark_as_read: bool = False,
        include_read: bool = False,
        limit: int = 20,
    ) -> dict[str, Any]:
        """Header summaries, newest first, as they stood before any marking."""
        agent = self.registry.require(session_name)
        emails = [e for e in agent.email_inbox if include_read or not e.is_read]
        emails.sort(key=lambda e: e.sent_at, reverse=True)
        emails = emails[:limit]
        summaries = [e.summary() for e in emails]

        if mark_as_read:
            changed = [e.mark_read() for e in emails]
            if any(changed):
                await self.registry.save()

        return {
            "total_emails": len(summaries),
            "unread_count": agent.unread_email_count,
            "total_inbox_count": len(agent.email_inbox),
            "emails": summaries,
            "checked_at": now().isoformat(),
        }

    async def get_email(
        self,
        session_name: str,
        email_id: str,
        mark_as_read: bool = True,
    ) -> EmailMessage:
        """Open an email from the caller's own inbox."""
        agent = self.registry.require(session_name)
        email = self._email(agent, email_id)
        if mark_as_read and email.mark_read():
            await self.registry.save()
        return email

    async def reply_to_email(
        self,
        session_name: str,
        email_id: str,
        body: str,
        include_original: bool = True,
        priority: Priority | str = Priority.NORMAL,
    ) -> dict[str, Any]:
        """Reply to the original sender only, staying on the original thread.

        The replier keeps a copy of the reply in their own inbox.
        """
        agent = self.registry.require(session_name)
        original = self._email(agent, email_id)

        if include_original:
            body += (
                "\n\n--- Original Message ---\n"
                f"From: {original.sender_name}\n"
                f"Subject: {original.subject}\n"
                f"Date: {original.sent_at.isoformat()}\n\n"
                f"{original.body}"
            )

        reply = EmailMessage(
            id=f"reply_{epoch_millis()}_{new_id()}",
            sender_id=agent.id,
            sender_name=agent.name,
            to_recipients=[original.sender_id],
            cc_recipients=list(original.cc_recipients),
            subject=f"Re: {original.subject}",
            body=body,
            priority=Priority(priority),
            reply_to_id=original.id,
            thread_id=original.thread_id,
        )

        original_sender = self.registry.get(original.sender_id)
        if original_sender is not None and original_sender.id != agent.id:
            original_sender.email_inbox.append(reply.model_copy(deep=True))
        agent.email_inbox.append(reply.model_copy(deep=True))
        await self.registry.save()

        return {
            "reply_id": reply.id,
            "original_email_id": original.id,
            "subject": reply.subject,
            "sent_to": original.sender_name,
            "sent_at": reply.sent_at.isoformat(),
            "thread_id": reply.thread_id,
        }

    async def forward_email(
        self,
        session_name: str,
        email_id: str,
        to: list[str],
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        note: str = "",
    ) -> dict[str, Any]:
        """Forward an email the caller holds; the forward starts its own thread."""
        agent = self.registry.require(session_name)
        original = self._email(agent, email_id)
        cc = list(cc or [])
        bcc = list(bcc or [])

        body = f"{note}\n\n" if note else ""
        body += (
            "--- Forwarded Message ---\n"
            f"From: {original.sender_name}\n"
            f"Subject: {original.subject}\n"
            f"Date: {original.sent_at.isoformat()}\n"
        )
        if original.to_recipients:
            body += f"To: {', '.join(original.to_recipients)}\n"
        if original.cc_recipients:
            body += f"CC: {', '.join(original.cc_recipients)}\n"
        body += f"\n{original.body}"

        forward = EmailMessage(
            id=f"forward_{epoch_millis()}_{new_id()}",
            sender_id=agent.id,
            sender_name=agent.name,
            to_recipients=list(to),
            cc_recipients=cc,
            bcc_recipients=bcc,
            subject=f"Fwd: {original.subject}",
            body=body,
            priority=original.priority,
            forward_from_id=original.id,
            thread_id=f"forward_{original.thread_id}",
            attachments=[a.model_copy() for a in original.attachments],
        )
        addresses = [*to, *cc, *bcc]
        delivered = self._deliver(forward, addresses)
        await self.registry.save()

        return {
            "forwarded_email_id": forward.id,
            "original_email_id": original.id,
            "subject": forward.subject,
            "delivered_to": delivered,
            "total_recipients": len(addresses),
            "successful_deliveries": len(delivered),
            "sent_at": forward.sent_at.isoformat(),
            "thread_id": forward.thread_id,
        }

    async def delete_email(
        self,
        session_name: str,
        email_id: str,
        permanent: bool = False,
    ) -> dict[str, Any]:
        # There is no trash folder: ``permanent`` is echoed back but both
        # modes remove the email from the inbox.
        agent = self.registry.require(session_name)
        email = self._email(agent, email_id)
        agent.email_inbox.remove(email)
        await self.registry.save()
        return {
            "email_id": email.id,
            "subject": email.subject,
            "deleted_at": now().isoformat(),
            "permanent": permanent,
            "message": "Email deleted successfully",
        }

    def inbox_stats(self, session_name: str) -> dict[str, Any]:
        agent = self.registry.require(session_name)
        inbox = agent.email_inbox
        unread = agent.unread_email_count
        by_priority = {p.value: sum(1 for e in inbox if e.priority == p) for p in Priority}
        return {
            "total_emails": len(inbox),
            "unread_emails": unread,
            "read_emails": len(inbox) - unread,
            "high_priority_emails": by_priority[Priority.HIGH.value],
            "urgent_emails": by_priority[Priority.URGENT.value],
            "emails_by_priority": by_priority,
            "total_threads": len({e.thread_id for e in inbox}),
            "last_checked": now().isoformat(),
        }
