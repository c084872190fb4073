"""Rule-based capture filter.

Decides whether a piece of conversation text is worth remembering and which
category it belongs to. Both decisions are driven by ordered rule tables: the
first matching rule wins.
"""

import re
from typing import Callable, List, Optional, Pattern, Tuple

from redmem.memory.schema import MemoryCategory

MIN_CAPTURE_LENGTH = 10
MAX_CAPTURE_LENGTH = 500
MAX_EMOJI_COUNT = 3

RECALL_BLOCK_TAG = "relevant-memories"
RECALL_BLOCK_OPEN = f"<{RECALL_BLOCK_TAG}>"

_EMOJI_PATTERN = re.compile("[\U0001f300-\U0001f9ff]")


def _emoji_count(text: str) -> int:
    return len(_EMOJI_PATTERN.findall(text))


# Texts matching any of these are never captured
EXCLUSION_RULES: List[Tuple[str, Callable[[str], bool]]] = [
    ("length", lambda text: len(text) < MIN_CAPTURE_LENGTH or len(text) > MAX_CAPTURE_LENGTH),
    # Our own injected recall context
    ("injected_context", lambda text: RECALL_BLOCK_OPEN in text),
    ("system_markup", lambda text: text.startswith("<") and "</" in text),
    # Markdown summaries written by the agent
    ("agent_summary", lambda text: "**" in text and "\n-" in text),
    ("emoji_heavy", lambda text: _emoji_count(text) > MAX_EMOJI_COUNT),
]

# At least one must match for a text to be captured (English and Czech)
MEMORY_TRIGGERS: List[Pattern[str]] = [
    re.compile(r"zapamatuj si|pamatuj|remember", re.IGNORECASE),
    re.compile(r"preferuji|radši|nechci|prefer", re.IGNORECASE),
    re.compile(r"rozhodli jsme|budeme používat", re.IGNORECASE),
    re.compile(r"\+\d{10,}"),
    re.compile(r"[\w.-]+@[\w.-]+\.\w+"),
    re.compile(r"můj\s+\w+\s+je|je\s+můj", re.IGNORECASE),
    re.compile(r"my\s+\w+\s+is|is\s+my", re.IGNORECASE),
    re.compile(r"i (like|prefer|hate|love|want|need)", re.IGNORECASE),
    re.compile(r"always|never|important", re.IGNORECASE),
]

CATEGORY_RULES: List[Tuple[Pattern[str], MemoryCategory]] = [
    (re.compile(r"prefer|radši|like|love|hate|want", re.IGNORECASE), "preference"),
    (re.compile(r"rozhodli|decided|will use|budeme", re.IGNORECASE), "decision"),
    (re.compile(r"\+\d{10,}|@[\w.-]+\.\w+|is called|jmenuje se", re.IGNORECASE), "entity"),
    (re.compile(r"is|are|has|have|je|má|jsou", re.IGNORECASE), "fact"),
]

DEFAULT_CATEGORY: MemoryCategory = "other"


def capture_rejection_reason(text: str) -> Optional[str]:
    """Explain why text would not be captured.

    Returns:
        The name of the first exclusion rule that matched, ``"no_trigger"`` if no
        trigger pattern matched, or None if the text should be captured
    """
    for name, excluded in EXCLUSION_RULES:
        if excluded(text):
            return name
    if not any(pattern.search(text) for pattern in MEMORY_TRIGGERS):
        return "no_trigger"
    return None


def should_capture(text: str) -> bool:
    return capture_rejection_reason(text) is None


def detect_category(text: str) -> MemoryCategory:
    lower = text.lower()
    for pattern, category in CATEGORY_RULES:
        if pattern.search(lower):
            return category
    return DEFAULT_CATEGORY
