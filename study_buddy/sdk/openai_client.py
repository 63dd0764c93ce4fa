"""
OpenAI reply generation.

Wraps chat completions behind the tutor's ``generate_reply`` capability.
Failures are returned as values so callers can degrade gracefully.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Union

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)

DEFAULT_REPLY = "What do you think we should try next? What comes to mind?"


@dataclass(frozen=True)
class GeneratedReply:
    """Successful reply with provider-reported token counts, when given."""
    text: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@dataclass(frozen=True)
class GenerationError:
    """Why a reply could not be generated."""
    kind: str  # "timeout", "provider" or "unconfigured"
    detail: str = ""


GenerationOutcome = Union[GeneratedReply, GenerationError]


class ReplyGenerator(Protocol):
    """Anything that turns a system prompt and history into a reply."""

    async def generate_reply(
        self, system_prompt: str, messages: Sequence[Mapping[str, str]]
    ) -> GenerationOutcome:
        ...


class OfflineReplyGenerator:
    """Stand-in used when no API key is configured; always fails."""

    model = "offline"

    async def generate_reply(
        self, system_prompt: str, messages: Sequence[Mapping[str, str]]
    ) -> GenerationOutcome:
        return GenerationError(kind="unconfigured", detail="No API key configured")


class OpenAIReplyGenerator:
    """Reply generator backed by OpenAI chat completions.

    Every call is bounded by ``timeout`` seconds; timeouts and API errors
    come back as :class:`GenerationError`.
    """

    def __init__(
        self,
        model: str,
        max_tokens: int = 180,
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """Initialize the generator.

        Args:
            model: OpenAI model name (required)
            max_tokens: Reply length ceiling in tokens
            timeout: Seconds to wait for a reply
            base_url: Optional OpenAI-compatible endpoint
            api_key: API key (defaults to the client's environment lookup)
            client: Pre-built async client, mainly for tests

        Raises:
            ValueError: If model is missing/empty or limits are not positive
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if timeout <= 0:
            raise ValueError("timeout must be > 0")

        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.client = client or AsyncOpenAI(base_url=base_url, api_key=api_key)

    async def generate_reply(
        self, system_prompt: str, messages: Sequence[Mapping[str, str]]
    ) -> GenerationOutcome:
        """Generate a tutoring reply.

        Args:
            system_prompt: Instructions for the model
            messages: Conversation turns as ``{"role", "content"}`` mappings

        Returns:
            GeneratedReply on success, GenerationError otherwise
        """
        payload: List[Mapping[str, str]] = [{"role": "system", "content": system_prompt}]
        payload.extend({"role": m["role"], "content": m["content"]} for m in messages)

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=payload,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Reply generation timed out after %.1fs", self.timeout)
            return GenerationError(kind="timeout", detail=f"No reply within {self.timeout}s")
        except OpenAIError as e:
            logger.warning("Reply generation failed: %s", e)
            return GenerationError(kind="provider", detail=str(e))

        text = ""
        if response.choices:
            text = (response.choices[0].message.content or "").strip()

        usage = getattr(response, "usage", None)
        return GeneratedReply(
            text=text or DEFAULT_REPLY,
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
        )


def build_reply_generator(
    model: str,
    max_tokens: int = 180,
    timeout: float = 30.0,
    base_url: Optional[str] = None,
    api_key_env: str = "OPENAI_API_KEY",
) -> Union[OpenAIReplyGenerator, OfflineReplyGenerator]:
    """Build an OpenAI generator, or an offline one when no key is set."""
    api_key = os.environ.get(api_key_env)
    if not api_key:
        logger.warning("%s not set; replies will use the offline fallback", api_key_env)
        return OfflineReplyGenerator()
    return OpenAIReplyGenerator(
        model=model,
        max_tokens=max_tokens,
        timeout=timeout,
        base_url=base_url,
        api_key=api_key,
    )
