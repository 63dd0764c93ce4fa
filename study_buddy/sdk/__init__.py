"""
SDK for StudyBuddy.

Provides the reply generation capability used by the chat orchestrator.
"""

from .openai_client import (
    GeneratedReply,
    GenerationError,
    GenerationOutcome,
    OfflineReplyGenerator,
    OpenAIReplyGenerator,
    ReplyGenerator,
    build_reply_generator,
)

__all__ = [
    "GeneratedReply",
    "GenerationError",
    "GenerationOutcome",
    "OfflineReplyGenerator",
    "OpenAIReplyGenerator",
    "ReplyGenerator",
    "build_reply_generator",
]
