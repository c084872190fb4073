"""Lifecycle events for the memory hooks."""

from .base import BaseEvent, EventType
from .events import AgentEndEvent, BeforeAgentStartEvent, BeforeAgentStartResult

__all__ = [
    "AgentEndEvent",
    "BaseEvent",
    "BeforeAgentStartEvent",
    "BeforeAgentStartResult",
    "EventType",
]
