"""
deepsearch/data_models/events.py

Events carried on the typed channels.

Contains:
- BodyObservedEvent / HeadersObservedEvent: the two raw observation streams
- SessionIdentifierChanged / TemplateCaptured: capture outputs
- NoticeType / UINotice: streamed notices for the UI collaborator
- SessionChannels: one channel per stream
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from deepsearch.data_models.templates import RequestTemplate
from deepsearch.utils.event_channel import EventChannel


# Originator id of traffic generated by the replay machinery itself; never captured
REPLAY_ORIGINATOR_ID = -1


class BodyObservedEvent(BaseModel):
    """Pre-send observation: the raw request body."""
    request_id: str
    originator_id: int = Field(description="Tab/originator identity; REPLAY_ORIGINATOR_ID for own traffic")
    url: str
    raw_body: bytes | None = None


class HeadersObservedEvent(BaseModel):
    """Send observation: the final header list."""
    request_id: str
    originator_id: int
    url: str
    headers: list[tuple[str, str]] = Field(default_factory=list)


class SessionIdentifierChanged(BaseModel):
    """A new session-identifying header value was seen."""
    value: str
    captured_at: datetime


class TemplateCaptured(BaseModel):
    """A template was stored, replacing any previous template of its kind."""
    template: RequestTemplate


class NoticeType(StrEnum):
    """Notices streamed to the UI collaborator."""
    # replay runs
    PROGRESS = "PROGRESS"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"
    # analysis turn
    ANALYSIS_START = "ANALYSIS_START"
    ANALYSIS_CHUNK = "ANALYSIS_CHUNK"
    ANALYSIS_COMPLETE = "ANALYSIS_COMPLETE"
    ANALYSIS_ERROR = "ANALYSIS_ERROR"
    # chat turn
    CHAT_START = "CHAT_START"
    CHAT_CHUNK = "CHAT_CHUNK"
    CHAT_COMPLETE = "CHAT_COMPLETE"
    CHAT_ERROR = "CHAT_ERROR"
    # tool lifecycle
    TOOL_EXECUTING = "TOOL_EXECUTING"
    TOOL_PROGRESS = "TOOL_PROGRESS"
    TOOL_COMPLETE = "TOOL_COMPLETE"
    LLM_THINKING = "LLM_THINKING"


class UINotice(BaseModel):
    """One notice pushed to the UI collaborator."""
    type: NoticeType
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass
class SessionChannels:
    """One typed channel per event stream."""
    body_observed: EventChannel[BodyObservedEvent] = field(
        default_factory=lambda: EventChannel("body_observed")
    )
    headers_observed: EventChannel[HeadersObservedEvent] = field(
        default_factory=lambda: EventChannel("headers_observed")
    )
    session_identifier: EventChannel[SessionIdentifierChanged] = field(
        default_factory=lambda: EventChannel("session_identifier")
    )
    templates: EventChannel[TemplateCaptured] = field(
        default_factory=lambda: EventChannel("templates")
    )
    notices: EventChannel[UINotice] = field(
        default_factory=lambda: EventChannel("notices")
    )
