"""
Unit tests for token estimation and the per-user token ledger.
"""

import pytest

from study_buddy.core.token_counter import TokenUsage, estimate_tokens
from study_buddy.core.token_meter import TokenMeter, TokenUsageRecord


class TestEstimateTokens:
    """Test the character-length token heuristic."""

    def test_rounds_up(self):
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens("Solve 2x + 5 = 15") == 5

    def test_empty_text(self):
        """Test that empty or missing text costs nothing."""
        assert estimate_tokens("") == 0
        assert estimate_tokens(None) == 0


class TestTokenUsage:
    """Test resolution of provider-reported and estimated counts."""

    def test_total_tokens(self):
        assert TokenUsage(prompt_tokens=10, completion_tokens=5).total_tokens == 15

    def test_prefers_provider_counts(self):
        """Test that reported counts win over estimates."""
        usage = TokenUsage.resolve(3, "a reply of some length", prompt_tokens=120, completion_tokens=30)

        assert usage.prompt_tokens == 120
        assert usage.completion_tokens == 30

    def test_falls_back_to_estimates(self):
        """Test that missing counts are estimated from text."""
        usage = TokenUsage.resolve(3, "12345678")

        assert usage.prompt_tokens == 3
        assert usage.completion_tokens == 2
        assert usage.total_tokens == 5


class TestTokenMeter:
    """Test the in-memory usage ledger."""

    def setup_method(self):
        """Set up a fresh meter."""
        self.meter = TokenMeter(default_limit=100)

    def test_first_access_creates_zero_record(self):
        usage = self.meter.get_usage("alex")

        assert usage == TokenUsageRecord(user_id="alex", used=0, limit=100)
        assert len(self.meter) == 1

    def test_record_accumulates(self):
        """Test that usage is the sum of recorded amounts."""
        self.meter.record("alex", 30)
        self.meter.record("alex", 25)
        usage = self.meter.record("alex", 0)

        assert usage.used == 55
        assert usage.remaining == 45
        assert usage.percentage == 55
        assert self.meter.get_usage("alex").used == 55

    def test_users_are_independent(self):
        self.meter.record("alex", 40)

        assert self.meter.get_usage("sam").used == 0

    def test_check_allowed_fails_closed_at_limit(self):
        """Test that a user at exactly the limit is refused."""
        self.meter.record("alex", 99)
        assert self.meter.check_allowed("alex")

        self.meter.record("alex", 1)
        assert not self.meter.check_allowed("alex")
        assert self.meter.get_usage("alex").exhausted

    def test_overshoot_is_recorded(self):
        """Test that the final request may push usage past the limit."""
        usage = self.meter.record("alex", 150)

        assert usage.used == 150
        assert usage.remaining == 0
        assert usage.percentage == 150

    @pytest.mark.parametrize("amount", [-1, 2.5, "10", True])
    def test_record_rejects_invalid_amounts(self, amount):
        with pytest.raises(ValueError, match="non-negative integer"):
            self.meter.record("alex", amount)

    def test_set_limit_overrides_default(self):
        self.meter.record("alex", 100)
        usage = self.meter.set_limit("alex", 500)

        assert usage.limit == 500
        assert self.meter.check_allowed("alex")

    def test_reset_removes_record(self):
        self.meter.record("alex", 10)

        assert self.meter.reset("alex") is True
        assert self.meter.reset("alex") is False
        assert self.meter.get_usage("alex").used == 0

    def test_invalid_default_limit(self):
        with pytest.raises(ValueError, match="default_limit must be > 0"):
            TokenMeter(default_limit=0)
