"""Conversation lifecycle events consumed by the memory hooks.

1. BeforeAgentStartEvent: fired with the user's prompt before the agent runs.
   The handler answers with a BeforeAgentStartResult whose ``prepend_context`` is
   placed ahead of the agent's context.

2. AgentEndEvent: fired once the agent finished a turn, with the turn's messages.
   Messages are raw dicts as produced by the agent runtime: ``{"role": ...,
   "content": str | [{"type": "text", "text": ...}, ...]}``.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .base import BaseEvent, EventType


class BeforeAgentStartEvent(BaseEvent):
    """Agent is about to handle a prompt."""

    event_type: EventType = Field(default=EventType.BEFORE_AGENT_START, frozen=True)
    prompt: Optional[str] = None


class AgentEndEvent(BaseEvent):
    """Agent finished a turn."""

    event_type: EventType = Field(default=EventType.AGENT_END, frozen=True)
    success: bool = False
    messages: List[Any] = Field(default_factory=list)
    error: Optional[str] = None


class BeforeAgentStartResult(BaseModel):
    """Context to prepend to the agent's prompt."""

    prepend_context: str
    memory_count: int = 0
