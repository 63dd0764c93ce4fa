"""
Data models for storage layer.

Defines conversation, turn and transcript records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping


class Role(str, Enum):
    """Author of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatTurn:
    """A single message in a conversation."""
    role: Role
    content: str
    timestamp: datetime
    fallback: bool = False

    def to_message(self) -> Mapping[str, str]:
        """Provider-facing form without local bookkeeping."""
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class ConversationKey:
    """Identity of an active conversation: one key maps to one record."""
    user_id: str
    topic: str
    year_level: int

    @property
    def conversation_id(self) -> str:
        return f"{self.user_id}_{self.topic}_{self.year_level}"

    def __str__(self) -> str:
        return self.conversation_id


@dataclass
class ConversationRecord:
    """Message history and bookkeeping for one conversation.

    Owned by the conversation store. Only the session resolver (re-keying)
    and the chat orchestrator (appending exchanges) mutate it.
    """
    key: ConversationKey
    topic: str
    year_level: int
    curriculum: str
    created_at: datetime
    last_active_at: datetime
    messages: List[ChatTurn] = field(default_factory=list)
    total_tokens_used: int = 0

    @property
    def user_id(self) -> str:
        return self.key.user_id

    def append_exchange(
        self,
        user_turn: ChatTurn,
        assistant_turn: ChatTurn,
        tokens: int,
        now: datetime,
    ) -> None:
        """Append a user/assistant pair as one update."""
        self.messages = [*self.messages, user_turn, assistant_turn]
        self.total_tokens_used += tokens
        self.last_active_at = now

    def age_minutes(self, now: datetime) -> int:
        return round((now - self.created_at).total_seconds() / 60)


@dataclass(frozen=True)
class TranscriptEntry:
    """Immutable audit record of one tutoring exchange.

    Append-only: entries are pruned by age, never modified.
    """
    id: str
    user_id: str
    timestamp: datetime
    message: str
    response: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "response": self.response,
            "metadata": dict(self.metadata),
        }
