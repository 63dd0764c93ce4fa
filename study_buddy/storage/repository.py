"""
Repository pattern for data access.

In-memory stores for conversations and transcripts. State is deliberately
volatile and lives only as long as the process.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional

from .models import ConversationKey, ConversationRecord, TranscriptEntry


class ConversationStore:
    """Keyed collection of conversation records.

    Each mutation is a single dict assignment or deletion, so a failed
    request can lose a turn but never leave a torn record behind.
    """

    def __init__(self):
        self._records: Dict[ConversationKey, ConversationRecord] = {}

    def get(self, key: ConversationKey) -> Optional[ConversationRecord]:
        return self._records.get(key)

    def put(self, record: ConversationRecord) -> None:
        self._records[record.key] = record

    def delete(self, key: ConversationKey) -> bool:
        """Remove the record at ``key``. Returns whether one existed."""
        return self._records.pop(key, None) is not None

    def rekey(self, old_key: ConversationKey, new_key: ConversationKey) -> ConversationRecord:
        """Move a record to a new key (delete + insert).

        Raises:
            KeyError: If no record exists at old_key
            ValueError: If another record already occupies new_key
        """
        if old_key == new_key:
            return self._records[old_key]
        if new_key in self._records:
            raise ValueError(f"Conversation {new_key} already exists")
        record = self._records.pop(old_key)
        record.key = new_key
        self._records[new_key] = record
        return record

    def list_for_user(self, user_id: str) -> List[ConversationRecord]:
        """Return the user's conversations, most recently active first."""
        records = [record for key, record in self._records.items() if key.user_id == user_id]
        records.sort(key=lambda record: record.last_active_at, reverse=True)
        return records

    def most_recent(self, user_id: str) -> Optional[ConversationRecord]:
        records = self.list_for_user(user_id)
        return records[0] if records else None

    def user_ids(self) -> List[str]:
        return sorted({key.user_id for key in self._records})

    def __iter__(self) -> Iterator[ConversationRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: ConversationKey) -> bool:
        return key in self._records


class TranscriptRepository:
    """Append-only transcript log grouped by user."""

    def __init__(self):
        self._entries: Dict[str, List[TranscriptEntry]] = {}

    def append(self, entry: TranscriptEntry) -> None:
        self._entries.setdefault(entry.user_id, []).append(entry)

    def list_for_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[TranscriptEntry]:
        """Get a user's transcripts, newest first.

        Args:
            user_id: User to look up
            limit: Maximum number of entries to return (None for all)
            offset: Number of newest entries to skip

        Returns:
            List of transcript entries ordered by timestamp (newest first)
        """
        entries = sorted(
            self._entries.get(user_id, []),
            key=lambda entry: entry.timestamp,
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return entries[offset:end]

    def count(self, user_id: str) -> int:
        return len(self._entries.get(user_id, []))

    def stats(self, user_id: str, now: Optional[datetime] = None, days: int = 7) -> Dict[str, object]:
        """Aggregate counts for a user's transcripts.

        Returns:
            Dictionary with total transcripts, transcripts in the last ``days``,
            a per-subject breakdown and total tokens
        """
        now = now or datetime.now()
        cutoff = now - timedelta(days=days)
        entries = self._entries.get(user_id, [])
        subjects = Counter(
            entry.metadata.get("detectedTopic") or entry.metadata.get("subject") or "Unknown"
            for entry in entries
        )
        return {
            "totalTranscripts": len(entries),
            "last7DaysCount": sum(1 for entry in entries if entry.timestamp >= cutoff),
            "subjects": dict(subjects),
            "totalTokens": sum(int(entry.metadata.get("tokensUsed", 0)) for entry in entries),
        }

    def prune(self, cutoff: datetime) -> int:
        """Delete entries older than ``cutoff``; drop users left with none.

        Returns:
            Number of entries removed
        """
        removed = 0
        for user_id in list(self._entries):
            kept = [entry for entry in self._entries[user_id] if entry.timestamp >= cutoff]
            removed += len(self._entries[user_id]) - len(kept)
            if kept:
                self._entries[user_id] = kept
            else:
                del self._entries[user_id]
        return removed

    def user_ids(self) -> List[str]:
        return sorted(self._entries)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
