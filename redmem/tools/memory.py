"""Memory tools the agent can call to recall, store and forget long-term memories."""

from typing import Any, Dict, List, Optional

from ..exceptions import ToolValidationError
from ..memory.schema import MEMORY_CATEGORIES, MemorySearchResult
from . import tool

RECALL_MIN_SCORE = 0.1
RECALL_MODES = ("vector", "text", "hybrid")


def _get_plugin():
    from redmem.plugin import get_memory_plugin

    return get_memory_plugin()


def _response(text: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}], "details": details}


def _format_result_line(index: int, result: MemorySearchResult) -> str:
    role = f" ({result.entry.role})" if result.entry.role else ""
    return f"{index}. [{result.entry.category}]{role} {result.entry.text} ({result.score * 100:.0f}%)"


@tool
async def memory_recall(query: str, limit: int = 5, mode: str = "vector") -> Dict[str, Any]:
    """Search long-term memories in Redis by meaning, keywords or both.

    Args:
        query: What to look for
        limit: Maximum results to return (default 5)
        mode: "vector" (semantic), "text" (keyword) or "hybrid"

    Returns:
        Dict with a text summary and the matching memories
    """
    if mode not in RECALL_MODES:
        raise ToolValidationError("mode", mode, f"must be one of: {', '.join(RECALL_MODES)}")
    if limit < 1:
        raise ToolValidationError("limit", str(limit), "must be at least 1")

    plugin = _get_plugin()
    results = await plugin.search(query, limit=limit, mode=mode, min_score=RECALL_MIN_SCORE)

    if not results:
        return _response("No relevant memories found.", {"count": 0, "mode": mode})

    lines = "\n".join(_format_result_line(i, r) for i, r in enumerate(results, start=1))
    return _response(
        f"Found {len(results)} memories ({mode} search):\n\n{lines}",
        {"count": len(results), "mode": mode, "memories": [r.to_dict() for r in results]},
    )


@tool
async def memory_store(text: str, importance: float = 0.7, category: str = "other") -> Dict[str, Any]:
    """Save important information in Redis long-term memory.

    Use for preferences, facts, decisions and entities the user wants kept.

    Args:
        text: Information to remember
        importance: Importance between 0 and 1 (default 0.7)
        category: One of preference, fact, decision, entity, other

    Returns:
        Dict describing whether a memory was created or already existed
    """
    if category not in MEMORY_CATEGORIES:
        raise ToolValidationError("category", category, f"must be one of: {', '.join(MEMORY_CATEGORIES)}")
    if not 0 <= importance <= 1:
        raise ToolValidationError("importance", str(importance), "must be between 0 and 1")

    plugin = _get_plugin()
    outcome = await plugin.remember(text, importance=importance, category=category, role="user")

    if outcome.action == "duplicate":
        existing = outcome.existing.entry
        return _response(
            f'Similar memory already exists: "{existing.text}"',
            {"action": "duplicate", "existingId": existing.id, "existingText": existing.text},
        )

    return _response(
        f'Stored in Redis: "{text[:100]}..."',
        {"action": "created", "id": outcome.entry.id, "embeddingModel": outcome.entry.embedding_model},
    )


@tool
async def memory_forget(query: Optional[str] = None, memory_id: Optional[str] = None) -> Dict[str, Any]:
    """Delete specific memories from Redis.

    Args:
        query: Search used to find the memory to delete
        memory_id: Exact ID of the memory to delete

    Returns:
        Dict describing what was deleted, or candidates to choose from
    """
    plugin = _get_plugin()
    outcome = await plugin.forget(query=query, memory_id=memory_id)

    if outcome.action == "deleted":
        text = f'Forgotten: "{outcome.text}"' if outcome.text else f"Memory {outcome.memory_id} forgotten."
        return _response(text, {"action": "deleted", "id": outcome.memory_id})

    if outcome.action == "not_found":
        return _response(f"Memory {outcome.memory_id} not found.", {"action": "not_found", "id": outcome.memory_id})

    if outcome.action == "no_match":
        return _response("No matching memories found.", {"found": 0})

    if outcome.action == "candidates":
        listing = "\n".join(f"- [{r.entry.id[:8]}] {r.entry.text[:60]}..." for r in outcome.candidates)
        candidates: List[Dict[str, Any]] = [
            {"id": r.entry.id, "text": r.entry.text, "category": r.entry.category, "score": r.score}
            for r in outcome.candidates
        ]
        return _response(
            f"Found {len(outcome.candidates)} candidates. Specify memory_id:\n{listing}",
            {"action": "candidates", "candidates": candidates},
        )

    return _response("Provide query or memory_id.", {"error": "missing_param"})
