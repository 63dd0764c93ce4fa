"""
Per-user token budget ledger.

Usage only grows through ``TokenMeter.record``; ``reset`` is the
administrative escape hatch.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterator


@dataclass(frozen=True)
class TokenUsageRecord:
    """Cumulative token usage for one user."""
    user_id: str
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    @property
    def percentage(self) -> int:
        if self.limit <= 0:
            return 100
        return round(self.used / self.limit * 100)


class TokenMeter:
    """In-memory ledger of token usage keyed by user id."""

    def __init__(self, default_limit: int = 5000):
        if default_limit <= 0:
            raise ValueError("default_limit must be > 0")
        self.default_limit = default_limit
        self._records: Dict[str, TokenUsageRecord] = {}

    def get_usage(self, user_id: str) -> TokenUsageRecord:
        """Return the user's usage, creating a zero record on first access."""
        record = self._records.get(user_id)
        if record is None:
            record = TokenUsageRecord(user_id=user_id, used=0, limit=self.default_limit)
            self._records[user_id] = record
        return record

    def check_allowed(self, user_id: str) -> bool:
        """Fail closed once the user has reached their limit."""
        return not self.get_usage(user_id).exhausted

    def record(self, user_id: str, amount: int) -> TokenUsageRecord:
        """Add ``amount`` tokens to the user's cumulative usage.

        Raises:
            ValueError: If amount is not a non-negative integer
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise ValueError(f"token amount must be a non-negative integer, got {amount!r}")
        current = self.get_usage(user_id)
        updated = replace(current, used=current.used + amount)
        self._records[user_id] = updated
        return updated

    def set_limit(self, user_id: str, limit: int) -> TokenUsageRecord:
        """Override a single user's ceiling."""
        if limit <= 0:
            raise ValueError("limit must be > 0")
        updated = replace(self.get_usage(user_id), limit=limit)
        self._records[user_id] = updated
        return updated

    def reset(self, user_id: str) -> bool:
        """Delete a user's record. Returns whether one existed."""
        return self._records.pop(user_id, None) is not None

    def __iter__(self) -> Iterator[TokenUsageRecord]:
        return iter(list(self._records.values()))

    def __len__(self) -> int:
        return len(self._records)
