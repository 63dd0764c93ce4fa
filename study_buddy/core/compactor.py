"""
Context compaction.

Bounds the history sent to the reply model: recent turns are kept verbatim,
older ones collapse into a one-line summary.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from study_buddy.storage.models import ChatTurn, Role

SUMMARY_PREFIX = "Earlier in our conversation:"


@dataclass(frozen=True)
class CompactionResult:
    """History ready to send, with the summary that replaced older turns."""
    summary: Optional[str]
    trimmed: List[ChatTurn]


def summarize_turns(turns: Sequence[ChatTurn], max_items: int = 4, max_chars: int = 40) -> str:
    """Summarize the salient turns of ``turns`` in one sentence.

    Salient turns are assistant turns and user turns longer than 10
    characters. Returns an empty string when none qualify.
    """
    important = [
        turn for turn in turns
        if turn.role == Role.ASSISTANT or len(turn.content) > 10
    ][:max_items]
    parts = [
        ("Student asked: " if turn.role == Role.USER else "I guided: ") + turn.content[:max_chars]
        for turn in important
    ]
    if not parts:
        return ""
    return f"{SUMMARY_PREFIX} {'. '.join(parts)}..."


def compact_history(
    messages: Sequence[ChatTurn],
    threshold: int = 14,
    keep_recent: int = 10,
    max_items: int = 4,
    max_chars: int = 40,
) -> CompactionResult:
    """Trim ``messages`` once they exceed ``threshold``.

    The last ``keep_recent`` turns are kept verbatim; a summary of the older
    prefix is prepended as a synthetic user turn. Histories at or under the
    threshold come back unchanged, so compacting twice is a no-op.
    """
    if len(messages) <= threshold:
        return CompactionResult(summary=None, trimmed=list(messages))

    older, recent = messages[:-keep_recent], list(messages[-keep_recent:])
    summary = summarize_turns(older, max_items=max_items, max_chars=max_chars)
    if not summary:
        return CompactionResult(summary=None, trimmed=recent)

    context_turn = ChatTurn(
        role=Role.USER,
        content=f"[Context: {summary}]",
        timestamp=recent[0].timestamp if recent else datetime.now(),
    )
    return CompactionResult(summary=summary, trimmed=[context_turn, *recent])
