"""
Topic classification and relevance heuristics.

Keyword scoring against a static table. Everything here is a pure function
of its inputs.
"""

import re
from typing import Dict, Optional, Tuple

FALLBACK_TOPIC = "Mathematics"

# Order matters: ties resolve to the earlier entry.
TOPIC_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "Algebra": ("equation", "solve", "x", "y", "variable", "algebra", "=", "unknown"),
    "Geometry": ("angle", "triangle", "area", "perimeter", "shape", "circle", "rectangle"),
    "Fractions": ("fraction", "decimal", "percentage", "/", "percent", "ratio"),
    "Number Operations": (
        "add", "subtract", "multiply", "divide", "division",
        "multiplication", "times", "plus", "minus",
    ),
    "Indices": ("power", "exponent", "square", "cube", "^", "index", "indices"),
    "Statistics": ("data", "graph", "mean", "median", "average", "mode", "range"),
    "Number Theory": ("prime", "factor", "multiple", "divisible", "remainder"),
}

SHORT_MESSAGE_CHARS = 15

CONTINUATION_PATTERNS = (
    re.compile(r"^\d+$"),
    re.compile(r"^(yes|no|ok|right|correct|wrong)$"),
    re.compile(r"^(we|do|can|should|will|then|next|now|it|this|that)"),
    re.compile(r"^[+\-*/=().\d\s]+$"),
)

HOMEWORK_PHRASES = ("help with homework", "homework help", "need help with", "stuck on homework")

BLOCKED_SUBJECTS = ("religion", "politics", "dating", "video games", "movies", "do my homework for me")

MATH_KEYWORDS = (
    "math", "equation", "solve", "calculate", "find", "answer", "result",
    "x", "y", "z", "n",
    "formula", "problem", "number", "digit", "value", "solution",
    "add", "subtract", "multiply", "divide", "division", "multiplication",
    "addition", "subtraction",
    "fraction", "decimal", "percent", "ratio", "proportion", "area", "perimeter",
    "angle", "triangle", "square", "circle", "graph", "plot", "data", "mean",
    "median", "mode", "algebra", "geometry", "statistics", "probability",
    "factor", "multiple", "prime",
    "how", "what", "why", "when", "where", "which", "can you", "help",
    "stuck", "confused", "understand", "explain", "show", "work out",
)

FOLLOW_UP_WORDS = ("it", "this", "that", "we", "do", "can", "should", "will", "then", "next", "now")
SHORT_FOLLOW_UP_CHARS = 20

_NUMERIC_OR_SYMBOL = re.compile(r"[\d+\-*/=^()]")


def is_likely_continuation(message: str, prior_topic: Optional[str]) -> bool:
    """Return True when ``message`` reads as a follow-up to ``prior_topic``.

    Only a specific prior topic can be continued; the generic fallback label
    carries no information worth preserving.
    """
    if not prior_topic or prior_topic == FALLBACK_TOPIC:
        return False
    text = (message or "").strip().lower()
    if len(text) < SHORT_MESSAGE_CHARS:
        return True
    return any(pattern.search(text) for pattern in CONTINUATION_PATTERNS)


def score_topics(message: str) -> Dict[str, int]:
    """Count keyword hits per topic, in table order."""
    text = (message or "").lower()
    return {
        topic: sum(1 for keyword in keywords if keyword in text)
        for topic, keywords in TOPIC_KEYWORDS.items()
    }


def classify_topic(message: str, prior_topic: Optional[str] = None) -> str:
    """Map a message to a coarse topic label.

    Args:
        message: Student message
        prior_topic: Topic of the user's most recent conversation, if any

    Returns:
        The prior topic for follow-ups, otherwise the best-scoring topic or
        ``FALLBACK_TOPIC`` when nothing matches.
    """
    if is_likely_continuation(message, prior_topic):
        return prior_topic

    best_topic, best_score = FALLBACK_TOPIC, 0
    for topic, score in score_topics(message).items():
        if score > best_score:
            best_topic, best_score = topic, score
    return best_topic


def is_on_topic(message: str) -> bool:
    """Permissive relevance check for tutoring requests.

    Enforcement order:
    1. Homework-help phrasing is always allowed
    2. Any digit or arithmetic symbol is allowed
    3. Blocked subjects are rejected
    4. Math or study vocabulary is allowed
    5. Short follow-ups ("we divide it?") are allowed
    """
    text = (message or "").lower()

    if any(phrase in text for phrase in HOMEWORK_PHRASES):
        return True
    if _NUMERIC_OR_SYMBOL.search(text):
        return True
    if any(subject in text for subject in BLOCKED_SUBJECTS):
        return False
    if any(keyword in text for keyword in MATH_KEYWORDS):
        return True
    if len(text) < SHORT_FOLLOW_UP_CHARS:
        return any(word in text for word in FOLLOW_UP_WORDS)
    return False
