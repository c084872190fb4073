"""Base event model and event type enum."""

from datetime import datetime, timezone
from enum import IntEnum

from pydantic import BaseModel, Field


class EventType(IntEnum):
    """Conversation lifecycle event types."""

    BEFORE_AGENT_START = 1
    AGENT_END = 2


class BaseEvent(BaseModel):
    """Base class for all lifecycle events."""

    model_config = {"frozen": True, "use_enum_values": False}

    event_type: EventType = Field(frozen=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
