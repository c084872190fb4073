"""Redis Stack memory store with vector, keyword and hybrid search.

Memories are JSON documents stored at ``{key_prefix}:{id}`` and indexed by a
RediSearch index over the JSON paths. Vector search uses the index's HNSW cosine
field; the engine returns cosine *distance* in [0, 2], which is converted to a
similarity score in [0, 1].
"""

import asyncio
import logging
import re
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import numpy as np
import redis.asyncio as redis
from redis.commands.search.field import NumericField, TagField, TextField, VectorField
from redis.commands.search.query import Query
from redis.exceptions import ResponseError

try:
    from redis.commands.search.index_definition import IndexDefinition, IndexType
except ImportError:  # redis-py < 6
    from redis.commands.search.indexDefinition import IndexDefinition, IndexType

from redmem.config import DEFAULT_INDEX_NAME, DEFAULT_KEY_PREFIX, DEFAULT_VECTOR_DIM
from redmem.exceptions import IndexCreationError, IndexDimensionMismatchError, InvalidMemoryIdError
from redmem.memory.schema import MemoryCategory, MemoryEntry, MemoryRole, MemorySearchResult

logger = logging.getLogger(__name__)

# Text-only hits in hybrid search rank below genuine semantic matches
TEXT_ONLY_PENALTY = 0.8

RETURN_FIELDS = ("id", "text", "category", "importance", "createdAt", "role", "embeddingModel")

_UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_QUERY_SPECIAL_CHARS = re.compile(r"([\\@!{}()|\[\]\"':;,.<>~*?^$+\-=&/#%])")


def distance_to_score(distance: float) -> float:
    """Convert cosine distance (0 = identical, 2 = opposite) to similarity (1 = identical)."""
    return 1 - distance / 2


def escape_query(text: str) -> str:
    """Backslash-escape characters with special meaning in RediSearch query syntax."""
    return _QUERY_SPECIAL_CHARS.sub(r"\\\1", text)


def is_valid_memory_id(memory_id: str) -> bool:
    return bool(_UUID_PATTERN.match(memory_id))


def merge_hybrid_results(
    vector_results: Iterable[MemorySearchResult],
    text_results: Iterable[MemorySearchResult],
    limit: int,
    text_penalty: float = TEXT_ONLY_PENALTY,
) -> List[MemorySearchResult]:
    """Merge vector and keyword hits by memory id.

    An id found by both keeps the vector hit and its score. Text-only hits are
    admitted with their score multiplied by ``text_penalty``. The merged list is
    sorted by descending score and truncated to ``limit``.
    """
    merged: Dict[str, MemorySearchResult] = {}
    for result in vector_results:
        merged.setdefault(result.entry.id, result)
    for result in text_results:
        if result.entry.id not in merged:
            merged[result.entry.id] = MemorySearchResult(entry=result.entry, score=result.score * text_penalty)

    return sorted(merged.values(), key=lambda r: r.score, reverse=True)[:limit]


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def parse_vector_dim(info: Dict[str, Any]) -> Optional[int]:
    """Extract the vector field dimension from FT.INFO output, if reported."""
    for attribute in info.get("attributes") or []:
        if not isinstance(attribute, (list, tuple)):
            continue
        items = [_to_str(item) for item in attribute]
        pairs = {items[i].lower(): items[i + 1] for i in range(0, len(items) - 1, 2)}
        if pairs.get("type", "").upper() != "VECTOR":
            continue
        try:
            return int(pairs["dim"])
        except (KeyError, ValueError):
            return None
    return None


class RedisMemoryStore:
    """Owns the Redis connection and the memory index.

    Connects lazily on the first operation. Concurrent first operations share one
    in-flight connection attempt; ``disconnect()`` resets all state so a later call
    reconnects.
    """

    def __init__(
        self,
        url: str,
        password: Optional[str] = None,
        tls: Optional[bool] = False,
        vector_dim: int = DEFAULT_VECTOR_DIM,
        index_name: str = DEFAULT_INDEX_NAME,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        client_factory: Optional[Callable[[], Any]] = None,
        dimension_provider: Optional[Callable[[], Awaitable[Optional[int]]]] = None,
    ):
        """Initialize the store (no I/O happens here).

        Args:
            url: Redis URL (redis:// or rediss://)
            password: Optional password overriding the URL's
            tls: Force TLS even for a redis:// URL
            vector_dim: Dimension used if the index has to be created
            index_name: RediSearch index name
            key_prefix: Key prefix for memory documents
            client_factory: Builds the async Redis client (tests inject fakes)
            dimension_provider: Awaited for the vector dimension only when the index
                has to be created; overrides vector_dim when it returns a value
        """
        self.url = url
        self.password = password
        self.tls = bool(tls)
        self.vector_dim = vector_dim
        self.index_name = index_name
        self.key_prefix = key_prefix
        self._client_factory = client_factory or self._create_client
        self.dimension_provider = dimension_provider
        self._client: Any = None
        self._connected = False
        self._init_task: Optional[asyncio.Task] = None
        self._index_ready = False
        self._index_dim: Optional[int] = None

    def _create_client(self) -> "redis.Redis":
        url = self.url
        if self.tls and url.startswith("redis://"):
            url = "rediss://" + url[len("redis://") :]
        kwargs: Dict[str, Any] = {"decode_responses": True}
        if self.password:
            kwargs["password"] = self.password
        return redis.Redis.from_url(url, **kwargs)

    def set_vector_dim(self, dim: int) -> None:
        """Set the dimension used when the index has to be created."""
        self.vector_dim = dim

    @property
    def index_dim(self) -> Optional[int]:
        """Vector dimension of the live index, when known."""
        return self._index_dim

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._connected

    def _key(self, memory_id: str) -> str:
        return f"{self.key_prefix}:{memory_id}"

    def _id_from_key(self, key: str) -> str:
        prefix = f"{self.key_prefix}:"
        return key[len(prefix) :] if key.startswith(prefix) else key

    def _ft(self):
        return self._client.ft(self.index_name)

    async def _ensure_initialized(self) -> None:
        if self.is_connected:
            return
        if self._init_task is None:
            self._init_task = asyncio.get_running_loop().create_task(self._initialize())

        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

    async def _initialize(self) -> None:
        client = self._client_factory()
        try:
            await client.ping()
            self._client = client
            await self._ensure_index()
        except Exception:
            self._client = None
            await self._close_client(client)
            raise
        self._connected = True
        logger.debug("Connected to Redis at %s", self.url)

    async def ensure_index(self) -> None:
        """Reuse the index if it exists, otherwise create it. Idempotent."""
        await self._ensure_initialized()
        await self._ensure_index()

    async def _ensure_index(self) -> None:
        if self._index_ready:
            return

        try:
            info = await self._ft().info()
        except ResponseError:
            info = None

        if info is not None:
            # Existing index is reused as-is; dimension is checked per vector operation
            self._index_dim = parse_vector_dim(info)
            self._index_ready = True
            logger.info("Using existing index %s (dim: %s)", self.index_name, self._index_dim or "unknown")
            return

        if self.dimension_provider is not None:
            dim = await self.dimension_provider()
            if dim:
                self.vector_dim = dim

        schema = (
            TagField("$.id", as_name="id"),
            TextField("$.text", as_name="text"),
            TagField("$.category", as_name="category"),
            NumericField("$.importance", as_name="importance"),
            NumericField("$.createdAt", as_name="createdAt"),
            TagField("$.role", as_name="role"),
            TagField("$.embeddingModel", as_name="embeddingModel"),
            VectorField(
                "$.vector",
                "HNSW",
                {"TYPE": "FLOAT32", "DIM": self.vector_dim, "DISTANCE_METRIC": "COSINE"},
                as_name="vector",
            ),
        )
        definition = IndexDefinition(prefix=[f"{self.key_prefix}:"], index_type=IndexType.JSON)

        try:
            await self._ft().create_index(schema, definition=definition)
        except Exception as e:
            logger.warning("Failed to create index %s: %s", self.index_name, e)
            raise IndexCreationError(f"Failed to create index {self.index_name}: {e}") from e

        self._index_dim = self.vector_dim
        self._index_ready = True
        logger.info("Created index %s (dim: %d)", self.index_name, self.vector_dim)

    def _check_dimension(self, vector: List[float]) -> None:
        if self._index_dim is not None and len(vector) != self._index_dim:
            raise IndexDimensionMismatchError(self.index_name, self._index_dim, len(vector))

    async def store(
        self,
        text: str,
        vector: List[float],
        importance: float,
        category: MemoryCategory,
        role: Optional[MemoryRole] = None,
        embedding_model: Optional[str] = None,
    ) -> MemoryEntry:
        """Persist a new memory. Assigns its id and creation time.

        No duplicate check happens here; callers search first when they need one.

        Returns:
            The complete stored entry
        """
        await self._ensure_initialized()
        self._check_dimension(vector)

        entry = MemoryEntry(
            id=str(uuid.uuid4()),
            text=text,
            vector=list(vector),
            importance=importance,
            category=category,
            created_at=int(time.time() * 1000),
            role=role,
            embedding_model=embedding_model,
        )
        await self._client.json().set(self._key(entry.id), "$", entry.to_document())
        logger.debug("Stored memory %s: %s", entry.id, text[:50])
        return entry

    async def search(self, vector: List[float], limit: int = 5, min_score: float = 0.5) -> List[MemorySearchResult]:
        """K-nearest-neighbour search, best match first.

        Args:
            vector: Query embedding
            limit: K (maximum results)
            min_score: Drop hits whose similarity is below this

        Returns:
            Up to ``limit`` results in engine order, vectors cleared
        """
        await self._ensure_initialized()
        self._check_dimension(vector)

        query = (
            Query(f"*=>[KNN {limit} @vector $BLOB AS score]")
            .sort_by("score", asc=True)
            .return_fields(*RETURN_FIELDS, "score")
            .paging(0, limit)
            .dialect(2)
        )
        blob = np.asarray(vector, dtype=np.float32).tobytes()
        result = await self._ft().search(query, query_params={"BLOB": blob})

        hits: List[MemorySearchResult] = []
        for doc in result.docs:
            fields = self._doc_fields(doc)
            try:
                distance = float(fields.get("score", 2.0))
            except (TypeError, ValueError):
                distance = 2.0
            score = distance_to_score(distance)
            if score < min_score:
                continue
            hits.append(MemorySearchResult(entry=MemoryEntry.from_fields(fields), score=score))

        return hits[:limit]

    async def text_search(self, query: str, limit: int = 5) -> List[MemorySearchResult]:
        """Prefix keyword search over memory text.

        The engine gives no relevance comparable to vector scores, so every hit
        scores 1.0.
        """
        if not query.strip():
            return []

        await self._ensure_initialized()

        search_query = Query(f"@text:{escape_query(query.strip())}*").return_fields(*RETURN_FIELDS).paging(0, limit)
        result = await self._ft().search(search_query)

        return [
            MemorySearchResult(entry=MemoryEntry.from_fields(self._doc_fields(doc)), score=1.0)
            for doc in result.docs
        ][:limit]

    async def hybrid_search(
        self,
        vector: List[float],
        query: str,
        limit: int = 5,
        min_score: float = 0.1,
    ) -> List[MemorySearchResult]:
        """Run vector and keyword search concurrently and merge the hits.

        If either search fails the other is cancelled before the error propagates.
        """
        tasks = [
            asyncio.ensure_future(self.search(vector, limit, min_score)),
            asyncio.ensure_future(self.text_search(query, limit)),
        ]
        try:
            vector_results, text_results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return merge_hybrid_results(vector_results, text_results, limit)

    async def delete(self, memory_id: str) -> bool:
        """Delete a memory by id.

        Returns:
            True if a memory was removed, False if none existed

        Raises:
            InvalidMemoryIdError: If the id is not a canonical UUID
        """
        if not is_valid_memory_id(memory_id):
            raise InvalidMemoryIdError(memory_id)

        await self._ensure_initialized()
        deleted = await self._client.delete(self._key(memory_id))
        if deleted:
            logger.debug("Deleted memory %s", memory_id)
        return deleted > 0

    async def count(self) -> int:
        """Number of indexed memories, as reported by the index."""
        await self._ensure_initialized()
        info = await self._ft().info()
        try:
            return int(float(info.get("num_docs", 0)))
        except (TypeError, ValueError):
            return 0

    def _doc_fields(self, doc: Any) -> Dict[str, Any]:
        # redis-py strips the "id" field from results; doc.id is the document key
        fields = {k: v for k, v in vars(doc).items() if k not in ("id", "payload")}
        fields["id"] = self._id_from_key(_to_str(doc.id))
        return fields

    async def _close_client(self, client: Any) -> None:
        try:
            await client.aclose()
        except Exception as e:
            logger.debug("Error closing Redis client: %s", e)

    async def disconnect(self) -> None:
        """Close the connection and reset state so the next call reconnects."""
        client = self._client
        self._client = None
        self._connected = False
        self._init_task = None
        self._index_ready = False
        self._index_dim = None
        if client is not None:
            await client.aclose()
