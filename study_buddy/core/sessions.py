"""
Session resolution.

Decides which stored conversation an incoming message belongs to:

1. Exact key hit - continue that conversation
2. Recent activity - a conversation active within the recency window is
   treated as the same session and re-keyed to the newly classified topic
3. Otherwise - start a fresh conversation

Resolution is synchronous, so within one event loop it cannot interleave
with another request's resolution.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from .topics import classify_topic
from study_buddy.storage.models import ConversationKey, ConversationRecord
from study_buddy.storage.repository import ConversationStore

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_WINDOW = timedelta(minutes=5)


class ResolutionOutcome(Enum):
    """How a conversation was found for a message."""
    EXISTING = "existing"
    MIGRATED = "migrated"
    CREATED = "created"


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a message to a conversation."""
    record: ConversationRecord
    detected_topic: str
    outcome: ResolutionOutcome
    previous_key: Optional[ConversationKey] = None

    @property
    def key(self) -> ConversationKey:
        return self.record.key


class SessionResolver:
    """Resolve messages to conversation records held in a store."""

    def __init__(
        self,
        store: ConversationStore,
        recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.recency_window = recency_window
        self.clock = clock

    def resolve(
        self,
        user_id: str,
        message: str,
        year_level: int,
        curriculum: str = "NSW",
        reset: bool = False,
    ) -> Resolution:
        """Find, migrate or create the conversation for ``message``.

        Args:
            user_id: Requesting user
            message: Incoming student message
            year_level: Student year level (part of the conversation key)
            curriculum: Curriculum tag stored on new records
            reset: Discard the conversation at the resolved key and skip the
                recency fallback, forcing a fresh conversation

        Returns:
            Resolution describing the record and how it was found
        """
        now = self.clock()
        most_recent = self.store.most_recent(user_id)
        prior_topic = most_recent.topic if most_recent else None

        topic = classify_topic(message, prior_topic)
        key = ConversationKey(user_id=user_id, topic=topic, year_level=year_level)

        if reset:
            if self.store.delete(key):
                logger.info("Reset conversation %s", key)
            if most_recent is not None and most_recent.key == key:
                most_recent = None
        else:
            record = self.store.get(key)
            if record is not None:
                return Resolution(record, topic, ResolutionOutcome.EXISTING)

            if most_recent is not None and now - most_recent.last_active_at <= self.recency_window:
                previous_key = most_recent.key
                record = self.store.rekey(previous_key, key)
                record.topic = topic
                record.year_level = year_level
                record.last_active_at = now
                logger.info("Migrated conversation %s -> %s", previous_key, key)
                return Resolution(record, topic, ResolutionOutcome.MIGRATED, previous_key)

        record = ConversationRecord(
            key=key,
            topic=topic,
            year_level=year_level,
            curriculum=curriculum,
            created_at=now,
            last_active_at=now,
        )
        self.store.put(record)
        logger.info("Created conversation %s", key)
        return Resolution(record, topic, ResolutionOutcome.CREATED)

    def reset(self, key: ConversationKey) -> bool:
        """Delete the conversation at ``key``. Returns whether one existed."""
        return self.store.delete(key)
