"""
Token counting and usage tracking.

Token figures are approximate: without a provider-reported count the
tutor falls back to a character-length heuristic.
"""

import math
from dataclasses import dataclass
from typing import Optional

CHARS_PER_TOKEN = 4


def estimate_tokens(text: Optional[str]) -> int:
    """Estimate tokens as one per four characters, rounded up."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class TokenUsage:
    """Token usage for a single tutoring exchange."""
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens

    @classmethod
    def resolve(
        cls,
        estimated_prompt: int,
        reply_text: str,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
    ) -> "TokenUsage":
        """Prefer provider-reported counts, falling back to estimates."""
        return cls(
            prompt_tokens=prompt_tokens if prompt_tokens else estimated_prompt,
            completion_tokens=(
                completion_tokens if completion_tokens else estimate_tokens(reply_text)
            ),
        )
