"""
System prompt assembly.

Combines the fixed Socratic tutoring policy with curriculum context and any
matching remediation scaffolds. Deterministic for the same inputs.
"""

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .curriculum import SCAFFOLDS, CurriculumTopic, Scaffold, lookup_topic

MAX_SCAFFOLDS = 3

TUTOR_POLICY = """You are StudyBuddy, a {curriculum} Year {year_level} mathematics tutor specializing in {topic}.

CORE PRINCIPLES:
- Use the Socratic method exclusively - NEVER give direct answers
- Ask guiding questions like "What do you notice?", "What happens if...?", "Can you tell me what this part means?"
- Break complex problems into tiny, manageable steps
- Wait for student responses before moving to the next step
- If student is stuck, give the tiniest hint possible, then ask another question
- Praise effort and thinking process, not just correct answers
- Keep responses under 80 words
- Stay focused on mathematics only
- Remember previous parts of our conversation to build understanding

CONVERSATION STYLE:
- Speak like you're explaining to a friend who's learning
- Use simple, clear language
- Be encouraging and patient
- Ask one question at a time
- Help them discover the answer themselves

EXAMPLE RESPONSES:
Instead of: "To solve 2x + 5 = 15, subtract 5 from both sides"
Say: "I see you have 2x + 5 = 15. What do you think we could do to get x by itself? What's the first step that comes to mind?"

Instead of: "The area of a circle is πr²"
Say: "Great question about circles! If you had a circle with radius 3, what do you think we'd need to know to find how much space it takes up?"

You maintain context of our entire conversation to guide learning progressively."""


class ScaffoldPriority(IntEnum):
    """How strongly a scaffold matched the request."""
    LOW = 1     # Topic or subtopic names share words with the scaffold
    MEDIUM = 2  # Scaffold belongs to a resolved curriculum topic
    HIGH = 3    # Scaffold keyword appears in the student's message


@dataclass(frozen=True)
class ScaffoldMatch:
    scaffold: Scaffold
    priority: ScaffoldPriority


def _words(texts: Iterable[str]) -> Set[str]:
    words = set()
    for text in texts:
        for word in re.findall(r"[a-z]+", text.lower()):
            if len(word) > 3:
                words.add(word.rstrip("s"))
    return words


def resolve_topics(topic: str, selected_topics: Optional[Sequence[str]] = None) -> List[CurriculumTopic]:
    """Curriculum entries for the selected topics, else the classified one."""
    names = list(selected_topics or []) or [topic]
    resolved: List[CurriculumTopic] = []
    for name in names:
        entry = lookup_topic(name)
        if entry is not None and entry not in resolved:
            resolved.append(entry)
    return resolved


def select_scaffolds(
    message: str,
    topics: Sequence[CurriculumTopic],
    topic_label: str = "",
    limit: int = MAX_SCAFFOLDS,
) -> List[ScaffoldMatch]:
    """Pick at most ``limit`` scaffolds, strongest matches first.

    Each scaffold is considered once at its highest priority; ties keep
    table order.
    """
    text = (message or "").lower()
    topic_ids = {topic.id for topic in topics}
    topic_words = _words(
        [topic_label]
        + [topic.name for topic in topics]
        + [subtopic for topic in topics for subtopic in topic.subtopics]
    )

    matches: Dict[str, ScaffoldMatch] = {}
    for scaffold in SCAFFOLDS:
        if any(keyword in text for keyword in scaffold.keywords):
            priority = ScaffoldPriority.HIGH
        elif scaffold.topic_id in topic_ids:
            priority = ScaffoldPriority.MEDIUM
        elif topic_words & _words([scaffold.title]):
            priority = ScaffoldPriority.LOW
        else:
            continue
        existing = matches.get(scaffold.key)
        if existing is None or priority > existing.priority:
            matches[scaffold.key] = ScaffoldMatch(scaffold, priority)

    ordered = sorted(matches.values(), key=lambda match: -match.priority)
    return ordered[:limit]


def _topic_section(topic: CurriculumTopic) -> str:
    lines = [f"TOPIC SCOPE - {topic.name}: {topic.description}"]
    lines.extend(f"- {subtopic}" for subtopic in topic.subtopics)
    if topic.misconception:
        lines.append(f"COMMON MISCONCEPTION: {topic.misconception} Watch for it and question it gently.")
    return "\n".join(lines)


def _scaffold_section(match: ScaffoldMatch) -> str:
    scaffold = match.scaffold
    lines = [f"SCAFFOLD ({match.priority.name}) - {scaffold.title}:"]
    lines.extend(f"{index}. {step}" for index, step in enumerate(scaffold.steps, start=1))
    lines.append(
        "Progress through these steps one step per turn. Never skip ahead; "
        "only move on once the student has completed the current step."
    )
    return "\n".join(lines)


def build_system_prompt(
    topic: str,
    year_level: int,
    curriculum: str,
    selected_topics: Optional[Sequence[str]] = None,
    message: str = "",
) -> str:
    """Assemble the system prompt for a tutoring turn.

    Args:
        topic: Classified topic label of the conversation
        year_level: Student year level
        curriculum: Curriculum tag (e.g. "NSW")
        selected_topics: Topics the student picked explicitly, if any
        message: Incoming student message, used for scaffold keywords

    Returns:
        The complete system prompt text
    """
    sections = [TUTOR_POLICY.format(curriculum=curriculum, year_level=year_level, topic=topic)]

    topics = resolve_topics(topic, selected_topics)
    sections.extend(_topic_section(entry) for entry in topics)
    sections.extend(_scaffold_section(match) for match in select_scaffolds(message, topics, topic))

    return "\n\n".join(sections)
