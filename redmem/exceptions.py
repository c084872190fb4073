"""Custom exception classes for redmem."""

from typing import Any, Dict, Optional


class RedmemError(Exception):
    """Base class for all redmem errors."""


class MemoryConfigError(RedmemError, ValueError):
    """Raised for missing or invalid settings, before any network I/O."""


class InvalidMemoryIdError(MemoryConfigError):
    """Raised when a memory ID is not a canonical UUID.

    Distinct from a "not found" outcome, which is reported as ``False``.
    """

    def __init__(self, memory_id: str):
        super().__init__(f"Invalid memory ID format: {memory_id}")
        self.memory_id = memory_id


class EmbeddingError(RedmemError):
    """Raised when an embedding cannot be produced."""


class EmbeddingProviderError(EmbeddingError):
    """Raised when neither the primary nor the fallback provider could be created.

    Attributes:
        provider: Requested primary provider
        reason: Why the primary provider failed
        fallback: Fallback provider that was attempted (if any)
        fallback_reason: Why the fallback failed (if attempted)
    """

    def __init__(
        self,
        provider: str,
        reason: str,
        fallback: Optional[str] = None,
        fallback_reason: Optional[str] = None,
    ):
        message = f"Embedding provider '{provider}' failed: {reason}"
        if fallback:
            message += f"; fallback '{fallback}' failed: {fallback_reason}"
        super().__init__(message)
        self.provider = provider
        self.reason = reason
        self.fallback = fallback
        self.fallback_reason = fallback_reason


class MemoryStoreError(RedmemError):
    """Raised for storage-engine level failures."""


class IndexCreationError(MemoryStoreError):
    """Raised when the search index does not exist and cannot be created."""


class IndexDimensionMismatchError(MemoryStoreError):
    """Raised when a vector's length differs from the index's vector dimension."""

    def __init__(self, index_name: str, index_dim: int, vector_dim: int):
        super().__init__(
            f"Index {index_name} expects vectors of dimension {index_dim}, got {vector_dim}. "
            "The embedding model changed since the index was created; recreate the index "
            "or switch back to the original model."
        )
        self.index_name = index_name
        self.index_dim = index_dim
        self.vector_dim = vector_dim


class ToolValidationError(RedmemError, ValueError):
    """Raised when a tool name or tool argument is invalid."""

    def __init__(self, item_type: str, item_name: str, details: str = ""):
        message = f"Invalid {item_type}: {item_name}"
        if details:
            message += f" ({details})"
        super().__init__(message)
        self.item_type = item_type
        self.item_name = item_name


class ToolExecutionError(RedmemError, RuntimeError):
    """Raised when a registered tool fails while executing.

    Attributes:
        tool_name: Name of the tool that failed
        details: Extra context about the failure
    """

    def __init__(self, tool_name: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.details = details or {}
