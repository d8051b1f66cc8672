"""Core types shared across all agentline servers."""

from __future__ import annotations

import re
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import TypeAlias

# ── ID Types ──────────────────────────────────────────────────────────────────

RequestId: TypeAlias = int | str


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def now() -> datetime:
    return datetime.now()


_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]+")


def _escape(match: re.Match) -> str:
    return "".join(f"%{b:02X}" for b in match.group().encode("utf-8"))


def safe_agent_name(agent_name: str) -> str:
    """Make an agent name usable as a file name component.

    Letters keep their case and any character outside ``[A-Za-z0-9_-]`` is
    percent-escaped, so distinct agent names never share a file.
    """
    return _UNSAFE_CHARS.sub(_escape, agent_name)


# ── Directory enums ──────────────────────────────────────────────────────────


class AgentStatus(str, Enum):
    ACTIVE = "active"
    BUSY = "busy"
    IDLE = "idle"
    OFFLINE = "offline"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class MessageType(str, Enum):
    INFO = "info"
    REQUEST = "request"
    RESPONSE = "response"
    TASK = "task"
    ALERT = "alert"
