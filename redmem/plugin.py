"""Memory plugin: owns the store, the embedding gateway and the lifecycle hooks."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from redmem.config import MemoryConfig, get_default_vector_dim, load_config
from redmem.exceptions import InvalidMemoryIdError
from redmem.hooks import DUPLICATE_THRESHOLD, MemoryHooks
from redmem.memory.embeddings import Embeddings
from redmem.memory.schema import MemoryCategory, MemoryEntry, MemoryRole, MemorySearchResult
from redmem.memory.store import RedisMemoryStore, is_valid_memory_id

logger = logging.getLogger(__name__)

SearchMode = Literal["vector", "text", "hybrid"]
SEARCH_MODES = ("vector", "text", "hybrid")

DEFAULT_IMPORTANCE = 0.7
FORGET_MIN_SCORE = 0.7
FORGET_AUTO_DELETE_SCORE = 0.9
FORGET_CANDIDATE_LIMIT = 5

# Singleton instance
_memory_plugin: Optional["MemoryPlugin"] = None


@dataclass
class StoreOutcome:
    """Result of an explicit store request."""

    action: Literal["created", "duplicate"]
    entry: Optional[MemoryEntry] = None
    existing: Optional[MemorySearchResult] = None


@dataclass
class ForgetOutcome:
    """Result of an explicit forget request."""

    action: Literal["deleted", "not_found", "candidates", "no_match", "missing_param"]
    memory_id: Optional[str] = None
    text: Optional[str] = None
    candidates: List[MemorySearchResult] = field(default_factory=list)


class MemoryPlugin:
    """Redis-backed long-term memory for an agent runtime."""

    def __init__(
        self,
        config: MemoryConfig,
        store: Optional[RedisMemoryStore] = None,
        embeddings: Optional[Embeddings] = None,
    ):
        """Build the store, gateway and hooks from config.

        Args:
            config: Validated memory configuration
            store: Pre-built store (tests)
            embeddings: Pre-built embedding gateway (tests)
        """
        self.config = config
        self.store = store or RedisMemoryStore(
            url=config.redis.url,
            password=config.redis.password,
            tls=config.redis.tls,
            vector_dim=config.embedding.dimension or get_default_vector_dim(),
            index_name=config.index_name,
            key_prefix=config.key_prefix,
        )
        self.embeddings = embeddings or Embeddings(config.embedding, on_dimension=self._on_dimension_known)
        self.store.dimension_provider = self._index_dimension
        self.hooks = MemoryHooks(
            self.store,
            self.embeddings,
            auto_recall=config.auto_recall,
            auto_capture=config.auto_capture,
        )
        logger.info(
            "Memory plugin registered (redis: %s, provider: %s)", config.redis.url, config.embedding.provider
        )

    def _on_dimension_known(self, dim: int) -> None:
        self.store.set_vector_dim(dim)
        logger.info("Detected vector dimension: %d", dim)

    async def _index_dimension(self) -> Optional[int]:
        # Only consulted when the index has to be created
        if self.config.embedding.dimension is not None:
            return self.config.embedding.dimension
        await self.embeddings.initialize()
        return self.embeddings.dimension

    async def search(
        self,
        query: str,
        limit: int = 5,
        mode: SearchMode = "vector",
        min_score: float = 0.1,
    ) -> List[MemorySearchResult]:
        """Search memories by meaning (vector), keywords (text) or both (hybrid)."""
        if mode not in SEARCH_MODES:
            raise ValueError(f"Invalid search mode: {mode}. Must be one of: {', '.join(SEARCH_MODES)}")

        if mode == "text":
            return await self.store.text_search(query, limit)

        vector = await self.embeddings.embed(query)
        if mode == "hybrid":
            return await self.store.hybrid_search(vector, query, limit, min_score)
        return await self.store.search(vector, limit, min_score)

    async def remember(
        self,
        text: str,
        importance: float = DEFAULT_IMPORTANCE,
        category: MemoryCategory = "other",
        role: Optional[MemoryRole] = "user",
    ) -> StoreOutcome:
        """Store a memory unless a near-identical one already exists."""
        vector = await self.embeddings.embed(text)

        existing = await self.store.search(vector, 1, DUPLICATE_THRESHOLD)
        if existing:
            return StoreOutcome(action="duplicate", existing=existing[0])

        entry = await self.store.store(
            text=text,
            vector=vector,
            importance=importance,
            category=category,
            role=role,
            embedding_model=self.embeddings.provider_info,
        )
        return StoreOutcome(action="created", entry=entry)

    async def forget(self, query: Optional[str] = None, memory_id: Optional[str] = None) -> ForgetOutcome:
        """Delete a memory by id, or by query when exactly one confident match exists.

        Raises:
            InvalidMemoryIdError: If memory_id is not a UUID
        """
        if memory_id:
            deleted = await self.delete(memory_id)
            return ForgetOutcome(action="deleted" if deleted else "not_found", memory_id=memory_id)

        if query:
            vector = await self.embeddings.embed(query)
            results = await self.store.search(vector, FORGET_CANDIDATE_LIMIT, FORGET_MIN_SCORE)

            if not results:
                return ForgetOutcome(action="no_match")

            if len(results) == 1 and results[0].score > FORGET_AUTO_DELETE_SCORE:
                match = results[0].entry
                await self.store.delete(match.id)
                return ForgetOutcome(action="deleted", memory_id=match.id, text=match.text)

            return ForgetOutcome(action="candidates", candidates=results)

        return ForgetOutcome(action="missing_param")

    async def delete(self, memory_id: str) -> bool:
        """Delete a memory by id.

        Raises:
            InvalidMemoryIdError: If memory_id is not a UUID (checked before any I/O)
        """
        if not is_valid_memory_id(memory_id):
            raise InvalidMemoryIdError(memory_id)
        return await self.store.delete(memory_id)

    async def count(self) -> int:
        return await self.store.count()

    async def stats(self) -> Dict[str, Any]:
        """Memory count plus a summary of the active configuration."""
        return {
            "count": await self.count(),
            "redis_url": self.config.redis.url,
            "index_name": self.config.index_name,
            "key_prefix": self.config.key_prefix,
            "embedding_provider": self.embeddings.provider_info,
            "auto_recall": self.config.auto_recall,
            "auto_capture": self.config.auto_capture,
        }

    def start(self) -> None:
        logger.info(
            "Memory plugin initialized (redis: %s, embedding: %s)",
            self.config.redis.url,
            self.config.embedding.provider,
        )

    async def stop(self) -> None:
        await self.store.disconnect()
        logger.info("Disconnected from Redis")


def get_memory_plugin(config_path: Optional[Path] = None) -> MemoryPlugin:
    """Get the singleton MemoryPlugin, loading config on first use.

    Raises:
        MemoryConfigError: If the config is missing or invalid
    """
    global _memory_plugin

    if _memory_plugin is None:
        _memory_plugin = MemoryPlugin(load_config(config_path))

    return _memory_plugin


def set_memory_plugin(plugin: Optional[MemoryPlugin]) -> None:
    """Install a pre-built plugin as the singleton (embedding hosts, tests)."""
    global _memory_plugin
    _memory_plugin = plugin


async def reset_memory_plugin() -> None:
    """Disconnect and drop the singleton."""
    global _memory_plugin
    if _memory_plugin is not None:
        await _memory_plugin.stop()
        _memory_plugin = None
