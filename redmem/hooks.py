"""Memory lifecycle hooks: recall before a turn, capture after it.

Hooks never fail the conversation: every error inside them is logged as a warning
and the hook degrades to a no-op (recall still provides the tool guidance text).
"""

import logging
import re
from typing import TYPE_CHECKING, Any, List, Optional, Union

from redmem.events import AgentEndEvent, BaseEvent, BeforeAgentStartEvent, BeforeAgentStartResult
from redmem.memory.capture import RECALL_BLOCK_TAG, detect_category, should_capture
from redmem.memory.schema import MEMORY_ROLES, CaptureCandidate, MemorySearchResult

if TYPE_CHECKING:
    from redmem.memory.embeddings import Embeddings
    from redmem.memory.store import RedisMemoryStore

logger = logging.getLogger(__name__)

MIN_RECALL_PROMPT_LENGTH = 5
RECALL_LIMIT = 3
RECALL_MIN_SCORE = 0.3

MAX_CAPTURES_PER_TURN = 3
DUPLICATE_THRESHOLD = 0.95
CAPTURE_IMPORTANCE = 0.7

MEMORY_SYSTEM_PROMPT = """You have access to a long-term memory system stored in Redis. Use these tools to remember important information across conversations:

- **memory_store**: Store important facts, preferences, decisions, or entities. Use this when the user shares personal information, preferences, or asks you to remember something.
- **memory_recall**: Search your memories when you need context about the user or past conversations.
- **memory_forget**: Delete memories when requested (GDPR compliance).

IMPORTANT: When the user tells you something about themselves (name, preferences, important facts) or explicitly asks you to remember something, use memory_store to save it - don't just write it to a file."""

_RECALL_BLOCK_PATTERN = re.compile(rf"<{RECALL_BLOCK_TAG}>[\s\S]*?</{RECALL_BLOCK_TAG}>\s*")


def format_memory_line(result: MemorySearchResult) -> str:
    role = f" ({result.entry.role})" if result.entry.role else ""
    return f"- [{result.entry.category}]{role} {result.entry.text}"


def format_memory_context(results: List[MemorySearchResult]) -> str:
    """Render recalled memories as the bracketed block prepended to the prompt."""
    lines = "\n".join(format_memory_line(r) for r in results)
    return (
        f"<{RECALL_BLOCK_TAG}>\n"
        "The following memories may be relevant to this conversation:\n"
        f"{lines}\n"
        f"</{RECALL_BLOCK_TAG}>"
    )


def strip_injected_memory_context(text: str) -> str:
    """Remove recalled-memory blocks that were prepended to a prompt."""
    return _RECALL_BLOCK_PATTERN.sub("", text).strip()


def extract_message_texts(messages: List[Any]) -> List[CaptureCandidate]:
    """Collect user/assistant text from a turn's messages.

    Handles both plain-string content and content arrays of ``{"type": "text"}``
    blocks; other roles and block types are ignored.
    """
    candidates: List[CaptureCandidate] = []
    for message in messages:
        if not isinstance(message, dict):
            continue

        role = message.get("role")
        if role not in MEMORY_ROLES:
            continue

        content = message.get("content")
        if isinstance(content, str):
            candidates.append(CaptureCandidate(text=content, role=role))
        elif isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                    candidates.append(CaptureCandidate(text=block["text"], role=role))

    return candidates


class MemoryHooks:
    """Wires conversation lifecycle events to the memory store."""

    def __init__(
        self,
        store: "RedisMemoryStore",
        embeddings: "Embeddings",
        auto_recall: bool = False,
        auto_capture: bool = False,
    ):
        self.store = store
        self.embeddings = embeddings
        self.auto_recall = auto_recall
        self.auto_capture = auto_capture

    async def before_agent_start(self, event: BeforeAgentStartEvent) -> BeforeAgentStartResult:
        """Recall memories relevant to the prompt.

        Always returns the tool guidance; recalled memories are added when
        auto-recall is on and something relevant was found.
        """
        prompt = event.prompt
        if not prompt or len(prompt) < MIN_RECALL_PROMPT_LENGTH or not self.auto_recall:
            return BeforeAgentStartResult(prepend_context=MEMORY_SYSTEM_PROMPT)

        # Earlier injected blocks must not steer recall
        query = strip_injected_memory_context(prompt) or prompt

        try:
            vector = await self.embeddings.embed(query)
            results = await self.store.search(vector, RECALL_LIMIT, RECALL_MIN_SCORE)
        except Exception as e:
            logger.warning("Memory recall failed: %s", e)
            return BeforeAgentStartResult(prepend_context=MEMORY_SYSTEM_PROMPT)

        if not results:
            return BeforeAgentStartResult(prepend_context=MEMORY_SYSTEM_PROMPT)

        logger.info("Injecting %d memories into context", len(results))
        return BeforeAgentStartResult(
            prepend_context=f"{MEMORY_SYSTEM_PROMPT}\n\n{format_memory_context(results)}",
            memory_count=len(results),
        )

    async def agent_end(self, event: AgentEndEvent) -> int:
        """Capture memorable statements from a finished turn.

        Returns:
            Number of memories stored
        """
        if not self.auto_capture or not event.success or not event.messages:
            return 0

        stored = 0
        try:
            candidates = [c for c in extract_message_texts(event.messages) if c.text and should_capture(c.text)]

            for candidate in candidates[:MAX_CAPTURES_PER_TURN]:
                category = detect_category(candidate.text)
                vector = await self.embeddings.embed(candidate.text)

                existing = await self.store.search(vector, 1, DUPLICATE_THRESHOLD)
                if existing:
                    logger.debug("Skipping known memory: %s", candidate.text[:50])
                    continue

                await self.store.store(
                    text=candidate.text,
                    vector=vector,
                    importance=CAPTURE_IMPORTANCE,
                    category=category,
                    role=candidate.role,
                    embedding_model=self.embeddings.provider_info,
                )
                stored += 1
        except Exception as e:
            logger.warning("Memory capture failed: %s", e)

        if stored > 0:
            logger.info("Auto-captured %d memories", stored)
        return stored

    async def handle_event(self, event: BaseEvent) -> Optional[Union[BeforeAgentStartResult, int]]:
        """Dispatch a lifecycle event to its hook."""
        if isinstance(event, BeforeAgentStartEvent):
            return await self.before_agent_start(event)
        if isinstance(event, AgentEndEvent):
            return await self.agent_end(event)
        return None
