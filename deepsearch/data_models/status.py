"""
deepsearch/data_models/status.py

Status snapshot and command models for the UI collaborator.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from deepsearch.data_models.threads import SearchProgress, SearchSummary


class Readiness(StrEnum):
    """Overall readiness, checked in declaration order."""
    RUNNING = "running"                     # a replay run is active
    NO_SESSION = "no_session"               # no session identifier observed yet
    MISSING_TEMPLATES = "missing_templates" # at least one template not captured
    READY = "ready"                         # on nextdoor.com with everything captured
    IDLE = "idle"                           # everything captured, not on nextdoor.com


class StatusSnapshot(BaseModel):
    """Readiness/progress snapshot."""
    has_session_identifier: bool
    session_identifier_captured_at: datetime | None = None
    is_on_nextdoor: bool = False
    is_on_search_page: bool = False
    current_query: str | None = None
    last_query: str | None = None
    is_running: bool = False
    progress: SearchProgress = Field(default_factory=SearchProgress)
    last_result: SearchSummary | None = None
    session_search_count: int = 0
    is_analyzing: bool = False
    has_search_template: bool = False
    has_detail_template: bool = False
    readiness: Readiness


class CommandType(StrEnum):
    """Commands accepted by the service."""
    GET_STATUS = "GET_STATUS"
    START_SEARCH = "START_SEARCH"
    START_ANALYSIS = "START_ANALYSIS"
    SEND_CHAT_MESSAGE = "SEND_CHAT_MESSAGE"
    GET_CHAT_HISTORY = "GET_CHAT_HISTORY"
    CLEAR_CHAT = "CLEAR_CHAT"
    GET_DEFAULT_PROMPT = "GET_DEFAULT_PROMPT"
    EXPORT_MARKDOWN = "EXPORT_MARKDOWN"


class ResponseType(StrEnum):
    """Responses returned for commands."""
    STATUS = "STATUS"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    SEARCH_RESULT = "SEARCH_RESULT"
    CHAT_HISTORY = "CHAT_HISTORY"
    DEFAULT_PROMPT = "DEFAULT_PROMPT"
    MARKDOWN = "MARKDOWN"
    ERROR = "ERROR"


class Command(BaseModel):
    """A command from the UI collaborator."""
    type: CommandType
    data: dict[str, Any] = Field(default_factory=dict)


class CommandResponse(BaseModel):
    """The answer to a command."""
    type: ResponseType
    data: Any = None
