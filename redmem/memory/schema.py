"""Memory data structures."""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

MemoryCategory = Literal["preference", "fact", "decision", "entity", "other"]
MemoryRole = Literal["user", "assistant"]

MEMORY_CATEGORIES: tuple = ("preference", "fact", "decision", "entity", "other")
MEMORY_ROLES: tuple = ("user", "assistant")


@dataclass
class MemoryEntry:
    """A stored memory with its semantic embedding.

    Entries are never updated in place; a changed memory is stored as a new entry.
    """

    id: str
    text: str
    vector: List[float]
    importance: float
    category: MemoryCategory
    created_at: int  # ms since epoch
    role: Optional[MemoryRole] = None
    embedding_model: Optional[str] = None  # "{provider}/{model}", for re-embedding migrations

    def to_document(self) -> Dict[str, Any]:
        """Convert to the JSON document stored in Redis (camelCase, unset fields omitted)."""
        doc: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "vector": [float(v) for v in self.vector],
            "importance": self.importance,
            "category": self.category,
            "createdAt": self.created_at,
        }
        if self.role is not None:
            doc["role"] = self.role
        if self.embedding_model is not None:
            doc["embeddingModel"] = self.embedding_model
        return doc

    @classmethod
    def from_fields(cls, data: Dict[str, Any]) -> "MemoryEntry":
        """Build an entry from search-result fields (values may arrive as strings).

        The vector is never returned by searches, so it is left empty.
        """
        category = data.get("category")
        role = data.get("role")
        return cls(
            id=str(data.get("id") or ""),
            text=str(data.get("text") or ""),
            vector=[],
            importance=_to_float(data.get("importance")),
            category=category if category in MEMORY_CATEGORIES else "other",
            created_at=int(_to_float(data.get("createdAt"))),
            role=role if role in MEMORY_ROLES else None,
            embedding_model=data.get("embeddingModel") or None,
        )


@dataclass
class MemorySearchResult:
    """A search hit: the entry (vector cleared) and its similarity score in [0, 1]."""

    entry: MemoryEntry
    score: float

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for tool and CLI output."""
        return {
            "id": self.entry.id,
            "text": self.entry.text,
            "category": self.entry.category,
            "importance": self.entry.importance,
            "role": self.entry.role,
            "embeddingModel": self.entry.embedding_model,
            "score": self.score,
        }


@dataclass
class CaptureCandidate:
    """A piece of conversation text and who produced it."""

    text: str
    role: MemoryRole


def _to_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
