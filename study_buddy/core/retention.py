"""
Retention sweeping.

Periodic garbage collection of idle conversations and old transcripts.
Runs as its own asyncio task; request handling never waits on it.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from study_buddy.storage.repository import ConversationStore, TranscriptRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepReport:
    """What a single sweep removed."""
    conversations_removed: int
    transcripts_removed: int

    @property
    def total_removed(self) -> int:
        return self.conversations_removed + self.transcripts_removed


class RetentionSweeper:
    """Evicts conversations and transcripts past their retention limits.

    Conversations go when idle longer than ``conversation_max_age`` or when
    they fall outside a user's ``max_conversations_per_user`` most recent.
    Transcripts go once older than ``transcript_max_age``.
    """

    def __init__(
        self,
        store: ConversationStore,
        transcripts: TranscriptRepository,
        conversation_max_age: timedelta = timedelta(days=7),
        max_conversations_per_user: int = 50,
        transcript_max_age: timedelta = timedelta(days=30),
        interval: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.transcripts = transcripts
        self.conversation_max_age = conversation_max_age
        self.max_conversations_per_user = max_conversations_per_user
        self.transcript_max_age = transcript_max_age
        self.interval = interval
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """Run one garbage-collection pass."""
        now = now or self.clock()
        cutoff = now - self.conversation_max_age

        conversations_removed = 0
        for user_id in self.store.user_ids():
            for index, record in enumerate(self.store.list_for_user(user_id)):
                if index >= self.max_conversations_per_user or record.last_active_at < cutoff:
                    if self.store.delete(record.key):
                        conversations_removed += 1

        transcripts_removed = self.transcripts.prune(now - self.transcript_max_age)

        report = SweepReport(conversations_removed, transcripts_removed)
        if report.total_removed:
            logger.info(
                "Retention sweep removed %d conversations and %d transcripts",
                conversations_removed, transcripts_removed,
            )
        return report

    async def run_forever(self) -> None:
        """Sweep every ``interval`` until cancelled."""
        while True:
            await asyncio.sleep(self.interval.total_seconds())
            try:
                self.sweep()
            except Exception:
                logger.exception("Retention sweep failed")

    def start(self) -> asyncio.Task:
        """Start the periodic sweep on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        """Cancel the periodic sweep and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
