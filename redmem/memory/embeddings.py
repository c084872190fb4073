"""Embedding providers and the lazily-initialized embedding gateway."""

import asyncio
import importlib.util
import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type

from redmem.config import EMBEDDING_PROVIDERS, EmbeddingSettings
from redmem.exceptions import EmbeddingError, EmbeddingProviderError, MemoryConfigError

logger = logging.getLogger(__name__)

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "text-embedding-3-small",
    "gemini": "gemini-embedding-001",
    "local": "BAAI/bge-small-en-v1.5",
}

# Order in which "auto" picks the first available provider
AUTO_PROVIDER_ORDER = ("local", "openai", "gemini")

PROBE_TEXT = "test"


class EmbeddingProvider:
    """Uniform interface over a concrete embedding backend."""

    id: str = ""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.model = model or DEFAULT_MODELS[self.id]
        self.api_key = api_key
        self.base_url = base_url

    async def initialize(self) -> None:
        """Create clients / load models. Called once before the first embedding."""

    async def embed_query(self, text: str) -> List[float]:
        raise NotImplementedError


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API (or any OpenAI-compatible server via base_url)."""

    id = "openai"

    async def initialize(self) -> None:
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ImportError("openai is required for openai embeddings. Install with: pip install openai") from e

        api_key = self.api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise MemoryConfigError("No API key configured for openai embeddings")
        self._client = AsyncOpenAI(api_key=api_key, base_url=self.base_url or None)

    async def embed_query(self, text: str) -> List[float]:
        response = await self._client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Google Gemini embeddings through the google-genai SDK."""

    id = "gemini"

    async def initialize(self) -> None:
        try:
            from google import genai
        except ImportError as e:
            raise ImportError(
                "google-genai is required for gemini embeddings. Install with: pip install redmem[gemini]"
            ) from e

        api_key = self.api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise MemoryConfigError("No API key configured for gemini embeddings")
        self._client = genai.Client(api_key=api_key)

    async def embed_query(self, text: str) -> List[float]:
        result = await self._client.aio.models.embed_content(model=self.model, contents=text)
        return list(result.embeddings[0].values)


class LocalEmbeddingProvider(EmbeddingProvider):
    """Local ONNX models through fastembed. Model loading and inference run in a worker thread."""

    id = "local"

    async def initialize(self) -> None:
        try:
            from fastembed import TextEmbedding
        except ImportError as e:
            raise ImportError(
                "fastembed is required for local embeddings. Install with: pip install redmem[local]"
            ) from e

        self._model = await asyncio.to_thread(TextEmbedding, model_name=self.model)

    async def embed_query(self, text: str) -> List[float]:
        vectors = await asyncio.to_thread(lambda: list(self._model.embed([text])))
        return vectors[0].tolist()


PROVIDER_CLASSES: Dict[str, Type[EmbeddingProvider]] = {
    "openai": OpenAIEmbeddingProvider,
    "gemini": GeminiEmbeddingProvider,
    "local": LocalEmbeddingProvider,
}


@dataclass
class EmbeddingProviderResult:
    """Outcome of provider selection."""

    provider: EmbeddingProvider
    fallback_from: Optional[str] = None
    fallback_reason: Optional[str] = None


def _is_available(provider_id: str, settings: EmbeddingSettings) -> bool:
    if provider_id == "local":
        return importlib.util.find_spec("fastembed") is not None
    if provider_id == "openai":
        return bool(settings.api_key or os.environ.get("OPENAI_API_KEY"))
    if provider_id == "gemini":
        return bool(settings.api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY"))
    return False


def resolve_auto_provider(settings: EmbeddingSettings) -> str:
    """Pick the first available provider for ``provider: auto``.

    Raises:
        MemoryConfigError: If no candidate is available
    """
    for candidate in AUTO_PROVIDER_ORDER:
        if _is_available(candidate, settings):
            return candidate
    raise MemoryConfigError(
        "No embedding provider available for 'auto': install fastembed for local embeddings "
        "or configure an API key for openai/gemini"
    )


def build_provider(provider_id: str, settings: EmbeddingSettings, model: Optional[str] = None) -> EmbeddingProvider:
    """Instantiate a provider by id without initializing it."""
    provider_cls = PROVIDER_CLASSES.get(provider_id)
    if provider_cls is None:
        raise MemoryConfigError(
            f"Invalid embedding provider: {provider_id}. Must be one of: {', '.join(EMBEDDING_PROVIDERS)}"
        )
    return provider_cls(model=model, api_key=settings.api_key, base_url=settings.base_url)


async def _create_initialized(provider_id: str, settings: EmbeddingSettings, model: Optional[str]) -> EmbeddingProvider:
    provider = build_provider(provider_id, settings, model)
    await provider.initialize()
    return provider


async def create_embedding_provider(settings: EmbeddingSettings) -> EmbeddingProviderResult:
    """Create the configured provider, trying the fallback once if the primary fails.

    The configured model applies to the primary provider only; a fallback provider
    uses its default model.

    Raises:
        MemoryConfigError: Unknown provider, or "auto" with nothing available
        EmbeddingProviderError: Primary failed and there was no working fallback
    """
    primary = settings.provider
    if primary == "auto":
        primary = resolve_auto_provider(settings)
    elif primary not in PROVIDER_CLASSES:
        raise MemoryConfigError(
            f"Invalid embedding provider: {primary}. Must be one of: {', '.join(EMBEDDING_PROVIDERS)}"
        )

    try:
        provider = await _create_initialized(primary, settings, settings.model)
        return EmbeddingProviderResult(provider=provider)
    except Exception as e:
        reason = str(e) or type(e).__name__
        fallback = settings.fallback
        if fallback == "none" or fallback == primary:
            raise EmbeddingProviderError(primary, reason) from e

        logger.debug("Embedding provider %s failed (%s), trying fallback %s", primary, reason, fallback)
        try:
            provider = await _create_initialized(fallback, settings, None)
        except Exception as fallback_error:
            raise EmbeddingProviderError(
                primary, reason, fallback, str(fallback_error) or type(fallback_error).__name__
            ) from fallback_error

        return EmbeddingProviderResult(provider=provider, fallback_from=primary, fallback_reason=reason)


class Embeddings:
    """Embedding gateway.

    Initializes the provider lazily, at most once: concurrent callers that arrive
    before initialization completes await the same in-flight task. After a successful
    initialization the vector dimension is recorded and reported once through
    ``on_dimension``. A failed initialization is surfaced to every waiting caller and
    cleared, so a later call starts a fresh attempt.
    """

    def __init__(self, settings: EmbeddingSettings, on_dimension: Optional[Callable[[int], None]] = None):
        self.settings = settings
        self._on_dimension = on_dimension
        self._provider: Optional[EmbeddingProvider] = None
        self._init_task: Optional[asyncio.Task] = None
        self._provider_info = "initializing"
        self._dimension: Optional[int] = None
        self.fallback_from: Optional[str] = None
        self.fallback_reason: Optional[str] = None

    @property
    def provider_info(self) -> str:
        """``"{provider}/{model}"`` once initialized, ``"initializing"`` before."""
        return self._provider_info

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def is_initialized(self) -> bool:
        return self._provider is not None

    async def initialize(self) -> None:
        """Select the provider and learn its dimension without embedding anything else."""
        await self._ensure_initialized()

    async def _ensure_initialized(self) -> None:
        if self._provider is not None:
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
        result = await create_embedding_provider(self.settings)
        provider = result.provider
        info = f"{provider.id}/{provider.model}"

        if result.fallback_from:
            self.fallback_from = result.fallback_from
            self.fallback_reason = result.fallback_reason
            logger.warning(
                "Fell back from %s to %s embeddings: %s", result.fallback_from, provider.id, result.fallback_reason
            )
        logger.info("Using embedding provider %s", info)

        # Probe once to learn the vector dimension
        probe = await provider.embed_query(PROBE_TEXT)
        self._dimension = len(probe)
        self._provider = provider
        self._provider_info = info

        if self._on_dimension is not None:
            self._on_dimension(self._dimension)

    async def embed(self, text: str) -> List[float]:
        """Embed text, initializing the provider on first use.

        Raises:
            EmbeddingError: If the provider returns a vector of an unexpected length
        """
        await self._ensure_initialized()
        vector = await self._provider.embed_query(text)
        if len(vector) != self._dimension:
            raise EmbeddingError(
                f"Embedding provider {self._provider_info} returned {len(vector)} dimensions, "
                f"expected {self._dimension}; changing models requires a restart"
            )
        return vector
