"""Data models for the message pipeline."""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np

ASSISTANT_SENDERS = frozenset({"system", "ai", "assistant"})


class Role(Enum):
    """Author of a message as seen by the pipeline."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def from_sender(cls, sender: str | None) -> "Role":
        """Map a persistence-layer sender marker to a role.

        Assistant replies are stored with a ``system``/``ai`` sender; every
        other sender (user ids, emails) is the user.
        """
        if sender and sender.strip().lower() in ASSISTANT_SENDERS:
            return cls.ASSISTANT
        return cls.USER


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single stored turn in the conversation."""

    role: Role
    content: str
    created_at: datetime.datetime

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ConversationTurn":
        """Build a turn from a persisted message record.

        Raises:
            ValueError: If the record has no ``createdAt`` timestamp.
        """
        created_at = record.get("createdAt") or record.get("created_at")
        if created_at is None:
            msg = "Message record is missing createdAt"
            raise ValueError(msg)
        if isinstance(created_at, str):
            created_at = datetime.datetime.fromisoformat(created_at)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=datetime.UTC)
        return cls(
            role=Role.from_sender(record.get("sender")),
            content=record.get("content") or "",
            created_at=created_at,
        )


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged entry of a composed prompt."""

    role: Role
    content: str

    def to_api(self) -> dict[str, str]:
        """Translate to the chat-completion wire format."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class EmbeddingStatus:
    """Outcome of submitting text to the embedding service."""

    status: str
    vector: np.ndarray | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != "error" and self.error is None

    @classmethod
    def from_error(cls, message: str) -> "EmbeddingStatus":
        return cls(status="error", error=message)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "EmbeddingStatus":
        vector = payload.get("vector")
        return cls(
            status=str(payload.get("status", "unknown")),
            vector=np.asarray(vector, dtype=np.float32) if vector else None,
            error=payload.get("error"),
        )


@dataclass(frozen=True)
class RAGMatch:
    """A retrieved snippet and its similarity score."""

    content: str
    score: float


@dataclass
class RAGResult:
    """Answer and context returned by the RAG service for one query."""

    answer: str
    context: str
    matches: list[RAGMatch] = field(default_factory=list)
    degraded: bool = False

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RAGResult":
        matches = [
            RAGMatch(content=str(m.get("content", "")), score=float(m.get("score", 0)))
            for m in payload.get("matches") or []
        ]
        return cls(
            answer=str(payload.get("answer") or ""),
            context=str(payload.get("context") or ""),
            matches=matches,
        )


@dataclass(frozen=True)
class PipelineReply:
    """Reply produced for one inbound user message."""

    content: str
    used_fallback: bool = False
    warning: str | None = None
