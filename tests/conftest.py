"""Test configuration and fixtures."""

import re
import zlib
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import numpy as np
import pytest
from redis.exceptions import ResponseError

from redmem.config import parse_config
from redmem.memory.embeddings import PROVIDER_CLASSES, EmbeddingProvider
from redmem.memory.store import RedisMemoryStore

HASH_DIM = 256


def text_vector(text: str, dim: int = HASH_DIM) -> List[float]:
    """Deterministic bag-of-words embedding: texts sharing words point the same way."""
    vec = np.zeros(dim, dtype=np.float64)
    for word in re.findall(r"\w+", text.lower()):
        vec[zlib.crc32(word.encode("utf-8")) % dim] += 1.0
    norm = np.linalg.norm(vec)
    if norm == 0:
        vec[0] = 1.0
        norm = 1.0
    return (vec / norm).tolist()


class HashEmbeddingProvider(EmbeddingProvider):
    """Offline embedding provider backed by text_vector()."""

    id = "local"
    init_calls = 0

    async def initialize(self) -> None:
        type(self).init_calls += 1

    async def embed_query(self, text: str) -> List[float]:
        return text_vector(text)


def _arg_after(args: List[Any], name: str) -> Optional[Any]:
    for i, item in enumerate(args[:-1]):
        if str(item).upper() == name:
            return args[i + 1]
    return None


class FakeSearchIndex:
    """The subset of the RediSearch commands used by RedisMemoryStore."""

    def __init__(self, server: "FakeRedis", name: str):
        self.server = server
        self.name = name

    async def info(self) -> Dict[str, Any]:
        index = self.server.indexes.get(self.name)
        if index is None:
            raise ResponseError(f"{self.name}: no such index")

        attributes = [["identifier", "$.text", "attribute", "text", "type", "TEXT"]]
        if index["dim"] is not None:
            attributes.append(
                ["identifier", "$.vector", "attribute", "vector", "type", "VECTOR", "dim", str(index["dim"])]
            )
        return {
            "index_name": self.name,
            "num_docs": str(len(self._keys(index))),
            "attributes": attributes,
        }

    async def create_index(self, fields, definition=None):
        if self.name in self.server.indexes:
            raise ResponseError("Index already exists")

        dim = None
        for field in fields:
            value = _arg_after(list(getattr(field, "args", [])), "DIM")
            if value is not None:
                dim = int(value)

        prefixes = [""]
        def_args = list(getattr(definition, "args", []))
        if "PREFIX" in def_args:
            pos = def_args.index("PREFIX")
            count = int(def_args[pos + 1])
            prefixes = [str(p) for p in def_args[pos + 2 : pos + 2 + count]]

        self.server.create_index_calls += 1
        self.server.indexes[self.name] = {"dim": dim, "prefixes": prefixes}
        return "OK"

    async def search(self, query, query_params=None):
        index = self.server.indexes.get(self.name)
        if index is None:
            raise ResponseError(f"{self.name}: no such index")

        query_string = query.query_string()
        knn = re.search(r"KNN (\d+)", query_string)
        if knn:
            return self._knn(index, int(knn.group(1)), query_params["BLOB"])

        text = re.match(r"@text:(.*)\*$", query_string)
        if text:
            return self._prefix_match(index, re.sub(r"\\(.)", r"\1", text.group(1)))

        raise ResponseError(f"Unsupported query: {query_string}")

    def _keys(self, index) -> List[str]:
        return [k for k in self.server.docs if any(k.startswith(p) for p in index["prefixes"])]

    def _result_doc(self, key: str, **extra) -> SimpleNamespace:
        fields = {k: v for k, v in self.server.docs[key].items() if k not in ("id", "vector")}
        fields = {k: str(v) if isinstance(v, (int, float)) else v for k, v in fields.items()}
        fields.update(extra)
        return SimpleNamespace(id=key, payload=None, **fields)

    def _knn(self, index, k: int, blob: bytes) -> SimpleNamespace:
        query_vec = np.frombuffer(blob, dtype=np.float32).astype(np.float64)
        scored = []
        for key in self._keys(index):
            doc_vec = np.asarray(self.server.docs[key]["vector"], dtype=np.float64)
            if len(doc_vec) != len(query_vec):
                raise ResponseError("Vector dimension mismatch")
            cosine = float(np.dot(query_vec, doc_vec) / (np.linalg.norm(query_vec) * np.linalg.norm(doc_vec)))
            scored.append((1.0 - cosine, key))
        scored.sort()
        docs = [self._result_doc(key, score=str(distance)) for distance, key in scored[:k]]
        return SimpleNamespace(total=len(docs), docs=docs)

    def _prefix_match(self, index, text: str) -> SimpleNamespace:
        terms = re.findall(r"\w+", text.lower())
        docs = []
        for key in self._keys(index):
            words = re.findall(r"\w+", str(self.server.docs[key].get("text", "")).lower())
            if terms and all(any(w.startswith(t) for w in words) for t in terms):
                docs.append(self._result_doc(key))
        return SimpleNamespace(total=len(docs), docs=docs)


class FakeJson:
    def __init__(self, server: "FakeRedis"):
        self.server = server

    async def set(self, key: str, path: str, obj: Dict[str, Any]):
        assert path == "$"
        self.server.docs[key] = dict(obj)
        return True


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis with the JSON and search modules."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.indexes: Dict[str, Dict[str, Any]] = {}
        self.create_index_calls = 0
        self.ping_calls = 0
        self.closed = False

    async def ping(self):
        self.ping_calls += 1
        return True

    async def aclose(self):
        self.closed = True

    def ft(self, index_name: str) -> FakeSearchIndex:
        return FakeSearchIndex(self, index_name)

    def json(self) -> FakeJson:
        return FakeJson(self)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.docs.pop(key, None) is not None:
                removed += 1
        return removed


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def memory_store(fake_redis) -> RedisMemoryStore:
    """Store wired to the in-memory fake server, with an 8-dimensional index."""
    return RedisMemoryStore(url="redis://localhost:6379", vector_dim=8, client_factory=lambda: fake_redis)


@pytest.fixture
def memory_config():
    return parse_config(
        {
            "redis": {"url": "redis://localhost:6379"},
            "embedding": {"provider": "local"},
        }
    )


@pytest.fixture
def hash_embeddings():
    """Route the "local" provider to HashEmbeddingProvider for the duration of a test."""
    HashEmbeddingProvider.init_calls = 0
    with patch.dict(PROVIDER_CLASSES, {"local": HashEmbeddingProvider}):
        yield HashEmbeddingProvider


@pytest.fixture
def memory_plugin(memory_config, fake_redis, hash_embeddings):
    """MemoryPlugin backed by the fake server and hash embeddings, installed as the singleton."""
    from redmem.plugin import MemoryPlugin, set_memory_plugin

    store = RedisMemoryStore(
        url=memory_config.redis.url,
        index_name=memory_config.index_name,
        key_prefix=memory_config.key_prefix,
        client_factory=lambda: fake_redis,
    )
    plugin = MemoryPlugin(memory_config, store=store)
    set_memory_plugin(plugin)
    yield plugin
    set_memory_plugin(None)


@pytest.fixture(autouse=True)
def reset_tool_registry():
    """Restore the tool registry after each test."""
    from redmem.tools import _tools

    original_tools = _tools.copy()
    yield
    _tools.clear()
    _tools.update(original_tools)
