"""
Chat orchestration.

Runs one tutoring request through
Validate -> Resolve -> BuildPrompt -> Generate -> Persist -> Respond.
Requests from the same user are serialised so that two in-flight messages
cannot split or double-charge a conversation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .compactor import compact_history
from .guardrails import GuardrailViolation, enforce_request_guardrails
from .prompts import build_system_prompt
from .sessions import SessionResolver
from .token_counter import TokenUsage
from .token_meter import TokenMeter, TokenUsageRecord
from study_buddy.config.loader import TutorConfig, default_config
from study_buddy.sdk.openai_client import GeneratedReply, ReplyGenerator
from study_buddy.storage.models import ChatTurn, Role, TranscriptEntry
from study_buddy.storage.repository import ConversationStore, TranscriptRepository

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "Hmm, I'm having a technical hiccup right now. While I sort this out, can you "
    "tell me what you were thinking about that problem? What approach were you considering?"
)


@dataclass(frozen=True)
class ChatRequest:
    """A student message and its request context."""
    user_id: str
    message: str
    subject: str = "Mathematics"
    year_level: int = 7
    curriculum: str = "NSW"
    selected_topics: Tuple[str, ...] = ()
    reset_context: bool = False


@dataclass(frozen=True)
class TokenSnapshot:
    """User token usage after a request. Figures may be estimates."""
    used: int
    limit: int
    this_request: int = 0

    @classmethod
    def from_usage(cls, usage: TokenUsageRecord, this_request: int = 0) -> "TokenSnapshot":
        return cls(used=usage.used, limit=usage.limit, this_request=this_request)

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "used": self.used,
            "limit": self.limit,
            "thisRequest": self.this_request,
            "approximate": True,
        }


@dataclass(frozen=True)
class ChatReply:
    """Outcome of a chat request, including soft declines."""
    response: str
    subject: str
    detected_topic: Optional[str]
    year_level: int
    curriculum: str
    conversation_length: int
    tokens: TokenSnapshot
    conversation_id: Optional[str] = None
    fallback: bool = False
    error: Optional[str] = None

    def to_payload(self) -> Mapping[str, Any]:
        payload = {
            "response": self.response,
            "subject": self.subject,
            "detectedTopic": self.detected_topic,
            "yearLevel": self.year_level,
            "curriculum": self.curriculum,
            "conversationLength": self.conversation_length,
            "conversationId": self.conversation_id,
            "fallback": self.fallback,
            "tokens": self.tokens.to_payload(),
        }
        if self.error:
            payload["error"] = self.error
        return payload


class ChatOrchestrator:
    """Owns the conversation store, token meter and transcript log."""

    def __init__(
        self,
        generator: ReplyGenerator,
        config: Optional[TutorConfig] = None,
        store: Optional[ConversationStore] = None,
        meter: Optional[TokenMeter] = None,
        transcripts: Optional[TranscriptRepository] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or default_config()
        self.generator = generator
        self.store = store if store is not None else ConversationStore()
        self.meter = meter if meter is not None else TokenMeter(self.config.tokens.default_limit)
        self.transcripts = transcripts if transcripts is not None else TranscriptRepository()
        self.clock = clock
        self.resolver = SessionResolver(
            self.store,
            recency_window=timedelta(minutes=self.config.sessions.recency_window_minutes),
            clock=clock,
        )
        # Locks live only while a user has requests holding or waiting on them.
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def handle(self, request: ChatRequest) -> ChatReply:
        """Answer one chat request.

        Returns:
            ChatReply for generated replies, fallbacks and soft declines

        Raises:
            GuardrailViolation: For hard rejections (empty message, token limit)
        """
        user_id = request.user_id
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                return await self._handle_locked(request)
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._user_locks[user_id]

    async def _handle_locked(self, request: ChatRequest) -> ChatReply:
        usage = self.meter.get_usage(request.user_id)

        # Validate
        try:
            input_tokens = enforce_request_guardrails(
                request.message, usage, self.config.tokens.max_input_tokens
            )
        except GuardrailViolation as e:
            if not e.is_soft:
                logger.info("Rejected request from %s: %s", request.user_id, e)
                raise
            logger.info("Declined request from %s: %s", request.user_id, e.reason.value)
            current = self.store.most_recent(request.user_id)
            return ChatReply(
                response=e.reply,
                subject=request.subject,
                detected_topic=None,
                year_level=request.year_level,
                curriculum=request.curriculum,
                conversation_length=len(current.messages) if current else 0,
                tokens=TokenSnapshot.from_usage(usage),
                error=e.reason.value,
            )

        # Resolve
        resolution = self.resolver.resolve(
            request.user_id,
            request.message,
            request.year_level,
            curriculum=request.curriculum,
            reset=request.reset_context,
        )
        record = resolution.record
        logger.info(
            "Conversation %s (%s, %d messages)",
            resolution.key, resolution.outcome.value, len(record.messages),
        )

        # BuildPrompt
        now = self.clock()
        user_turn = ChatTurn(role=Role.USER, content=request.message, timestamp=now)
        sessions = self.config.sessions
        compaction = compact_history(
            [*record.messages, user_turn],
            threshold=sessions.compaction_threshold,
            keep_recent=sessions.keep_recent,
        )
        if compaction.summary:
            logger.debug("Compacted history for %s: %s", resolution.key, compaction.summary)
        system_prompt = build_system_prompt(
            record.topic,
            request.year_level,
            request.curriculum,
            selected_topics=request.selected_topics,
            message=request.message,
        )

        # Generate
        outcome = await self.generator.generate_reply(
            system_prompt, [turn.to_message() for turn in compaction.trimmed]
        )
        if isinstance(outcome, GeneratedReply):
            reply_text = outcome.text
            token_usage = TokenUsage.resolve(
                input_tokens, reply_text, outcome.input_tokens, outcome.output_tokens
            )
            fallback = False
        else:
            logger.warning(
                "Generation failed for %s (%s): %s", resolution.key, outcome.kind, outcome.detail
            )
            reply_text = FALLBACK_REPLY
            token_usage = TokenUsage(prompt_tokens=input_tokens, completion_tokens=0)
            fallback = True

        # Persist
        now = self.clock()
        assistant_turn = ChatTurn(
            role=Role.ASSISTANT, content=reply_text, timestamp=now, fallback=fallback
        )
        charged = token_usage.total_tokens
        record.append_exchange(user_turn, assistant_turn, charged, now)
        usage = self.meter.record(request.user_id, charged)
        self.transcripts.append(
            TranscriptEntry(
                id=uuid.uuid4().hex,
                user_id=request.user_id,
                timestamp=now,
                message=request.message,
                response=reply_text,
                metadata={
                    "subject": request.subject,
                    "detectedTopic": resolution.detected_topic,
                    "yearLevel": request.year_level,
                    "curriculum": request.curriculum,
                    "tokensUsed": charged,
                    "conversationId": resolution.key.conversation_id,
                    "fallback": fallback,
                },
            )
        )
        logger.info(
            "Tokens for %s: +%d (user total %d/%d)",
            request.user_id, charged, usage.used, usage.limit,
        )

        # Respond
        return ChatReply(
            response=reply_text,
            subject=record.topic,
            detected_topic=resolution.detected_topic,
            year_level=request.year_level,
            curriculum=request.curriculum,
            conversation_length=len(record.messages),
            tokens=TokenSnapshot.from_usage(usage, this_request=charged),
            conversation_id=resolution.key.conversation_id,
            fallback=fallback,
        )
