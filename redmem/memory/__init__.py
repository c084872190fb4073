"""Memory system: embeddings, Redis-backed store and capture rules."""

from redmem.memory.capture import detect_category, should_capture
from redmem.memory.embeddings import Embeddings, create_embedding_provider
from redmem.memory.schema import MEMORY_CATEGORIES, MemoryEntry, MemorySearchResult
from redmem.memory.store import RedisMemoryStore

__all__ = [
    "MEMORY_CATEGORIES",
    "Embeddings",
    "MemoryEntry",
    "MemorySearchResult",
    "RedisMemoryStore",
    "create_embedding_provider",
    "detect_category",
    "should_capture",
]
