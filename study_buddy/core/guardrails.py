"""
Request guardrails and limits enforcement.

Screens chat requests before any reply is generated.

Enforcement Order:
1. Empty message - Nothing to tutor
2. Input length - Keeps a single request's cost bounded
3. Token budget - Ensures the user stays within their allowance
4. Relevance - Keeps the tutor on mathematics
"""

from enum import Enum
from typing import Optional

from .token_counter import estimate_tokens
from .token_meter import TokenUsageRecord
from .topics import is_on_topic


class RejectionReason(Enum):
    """Why a request was declined."""
    VALIDATION_ERROR = "validation_error"
    INPUT_TOO_LONG = "input_too_long"
    TOKEN_LIMIT_EXCEEDED = "token_limit_exceeded"
    OFF_TOPIC = "off_topic"


# Soft declines answer with a redirecting reply instead of an HTTP error.
SOFT_REPLIES = {
    RejectionReason.INPUT_TOO_LONG: (
        "That's quite a lot to work with! Can you break that down and ask me about "
        "just one part of your problem? What's the main thing you're stuck on?"
    ),
    RejectionReason.OFF_TOPIC: (
        "I'm here to help you discover answers in mathematics! What specific math "
        "problem or concept would you like to explore? What are you curious about?"
    ),
}

HTTP_STATUS = {
    RejectionReason.VALIDATION_ERROR: 400,
    RejectionReason.TOKEN_LIMIT_EXCEEDED: 429,
}


class GuardrailViolation(Exception):
    """Raised when a request fails a guardrail."""
    def __init__(
        self,
        message: str,
        reason: RejectionReason,
        usage: Optional[TokenUsageRecord] = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.usage = usage

    @property
    def is_soft(self) -> bool:
        """Soft declines are answered in-band with a tutoring reply."""
        return self.reason in SOFT_REPLIES

    @property
    def reply(self) -> Optional[str]:
        return SOFT_REPLIES.get(self.reason)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS.get(self.reason, 200)


def enforce_request_guardrails(
    message: Optional[str],
    usage: TokenUsageRecord,
    max_input_tokens: int = 1000,
) -> int:
    """
    Enforce request guardrails in a specific order of precedence.

    Enforcement Order:
    1. Empty message - VALIDATION_ERROR
    2. Estimated input tokens over ``max_input_tokens`` - INPUT_TOO_LONG
    3. Usage at or over the user's limit - TOKEN_LIMIT_EXCEEDED
    4. Message fails the relevance heuristic - OFF_TOPIC

    Args:
        message: Incoming student message
        usage: The user's current token usage
        max_input_tokens: Ceiling on the estimated input size

    Returns:
        int: Estimated input tokens for the message

    Raises:
        GuardrailViolation: On the first check that fails
    """
    if not message or not message.strip():
        raise GuardrailViolation("Message is required", RejectionReason.VALIDATION_ERROR)

    input_tokens = estimate_tokens(message)
    if input_tokens > max_input_tokens:
        raise GuardrailViolation(
            f"Message is about {input_tokens} tokens; the limit is {max_input_tokens}",
            RejectionReason.INPUT_TOO_LONG,
        )

    if usage.exhausted:
        raise GuardrailViolation(
            f"Token limit reached ({usage.used}/{usage.limit}). Please try again later.",
            RejectionReason.TOKEN_LIMIT_EXCEEDED,
            usage=usage,
        )

    if not is_on_topic(message):
        raise GuardrailViolation("Message is not about mathematics", RejectionReason.OFF_TOPIC)

    return input_tokens
