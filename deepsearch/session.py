"""
deepsearch/session.py

The session context shared by every component.

Constructed once at process start and passed by reference. Holds the
session identifier, page status, busy flags, search counters and the
conversation state (chat history plus every tool-triggered search).
"""

from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime

from pydantic import BaseModel, Field

from deepsearch.data_models.llms.interaction import ChatRole, Turn
from deepsearch.data_models.threads import SearchProgress, SearchResult
from deepsearch.utils.exceptions import RunInProgressError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


class SessionContext(BaseModel):
    """
    Mutable state of one running deepsearch process.

    All access happens from the single dispatching thread; no locking is done here.
    """

    # Session identifier (captured passively from observed traffic, never persisted)
    session_identifier: str | None = Field(default=None, repr=False)
    session_identifier_captured_at: datetime | None = None

    # Page status of the user's browsing
    is_on_nextdoor: bool = False
    is_on_search_page: bool = False
    current_query: str | None = None
    last_query: str | None = None

    # Busy flags: one for replay runs, one for agent runs
    is_running: bool = False
    is_analyzing: bool = False

    # Replay bookkeeping
    progress: SearchProgress = Field(default_factory=SearchProgress)
    last_result: SearchResult | None = None
    session_search_count: int = 0

    # Conversation state
    chat_history: list[Turn] = Field(default_factory=list)
    accumulated_searches: list[SearchResult] = Field(
        default_factory=list,
        description="Every tool-triggered search of the current conversation"
    )

    ## Conversation

    def reset_conversation(self) -> None:
        """Clear the chat history and the accumulated tool searches."""
        self.chat_history = []
        self.accumulated_searches = []
        logger.debug("Conversation reset")

    def append_turn(self, role: ChatRole, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self.chat_history.append(turn)
        return turn

    ## Busy flags

    @contextmanager
    def replay_run(self) -> Generator[None, None, None]:
        """
        Hold the replay busy flag for the duration of a run.

        Raises:
            RunInProgressError: If a replay run is already active.
        """
        if self.is_running:
            raise RunInProgressError("Search already in progress")
        self.is_running = True
        try:
            yield
        finally:
            self.is_running = False

    @contextmanager
    def agent_run(self) -> Generator[None, None, None]:
        """
        Hold the agent busy flag for the duration of an analysis or chat turn.

        Raises:
            RunInProgressError: If an agent run is already active.
        """
        if self.is_analyzing:
            raise RunInProgressError("Analysis in progress, please wait")
        self.is_analyzing = True
        try:
            yield
        finally:
            self.is_analyzing = False
