"""
deepsearch/data_models/threads.py

Data models for fetched and flattened discussion threads.

Contains Pydantic models for:
- Post / Business / Comment / Thread: one flattened detail record
- ItemError: one failed detail fetch
- SearchProgress / SearchSession: state of a running replay
- SearchResult / SearchSummary: outcome of a replay run
- ToolSearchStatus: progress of an agent-triggered replay
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, Field


NEXTDOOR_POST_URL = "https://nextdoor.com/p/{post_id}?view=detail"


class Post(BaseModel):
    """The original post of a thread."""
    author: str | None = None
    location: str | None = None
    subject: str | None = None
    body: str | None = None
    created_at: str | None = Field(default=None, description="Relative timestamp as displayed upstream")


class Business(BaseModel):
    """A business page tagged in a comment."""
    name: str | None = None
    category: str | None = None
    faves: int | None = Field(default=None, description="Endorsement count")
    address: str | None = None


class Comment(BaseModel):
    """
    One comment and its replies.

    A reply's nesting_level is exactly its parent's plus one; top-level comments are 0.
    """
    author: str | None = None
    location: str | None = None
    body: str | None = None
    created_at: str | None = None
    phone: str | None = Field(default=None, description="Phone number from an inline styled-text action")
    business: Business | None = None
    nesting_level: int = 0
    replies: list[Comment] = Field(default_factory=list)


class Thread(BaseModel):
    """One fetched detail record: the original post plus its full comment tree."""
    id: str
    url: str
    original_post: Post
    comments: list[Comment] = Field(default_factory=list)

    @classmethod
    def url_for(cls, post_id: str) -> str:
        return NEXTDOOR_POST_URL.format(post_id=post_id)


class ItemError(BaseModel):
    """A detail fetch that failed; the run continued without it."""
    item_id: str
    reason: str


class SearchProgress(BaseModel):
    """Progress of a replay run."""
    current: int = 0
    total: int = 0
    error_count: int = 0


class SearchSession(BaseModel):
    """Mutable state of one replay run; superseded by the next run."""
    query: str
    progress: SearchProgress = Field(default_factory=SearchProgress)
    threads: list[Thread] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)


class SearchResult(BaseModel):
    """Outcome of a replay run."""
    query: str
    threads: list[Thread] = Field(default_factory=list)
    errors: list[ItemError] = Field(default_factory=list)
    total_comment_count: int = 0
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def thread_count(self) -> int:
        return len(self.threads)

    def summary(self) -> SearchSummary:
        """Condensed view used in status snapshots and completion notices."""
        return SearchSummary(
            query=self.query,
            threads=len(self.threads),
            comments=self.total_comment_count,
            errors=len(self.errors),
            completed_at=self.completed_at,
        )


class SearchSummary(BaseModel):
    """Counts of a completed replay run."""
    query: str
    threads: int
    comments: int
    errors: int
    completed_at: datetime


class ToolSearchPhase(StrEnum):
    """Phases reported while an agent-triggered replay runs."""
    SEARCHING = "searching"
    FOUND_POSTS = "found_posts"
    FETCHING_THREAD = "fetching_thread"
    COMPLETE = "complete"


class ToolSearchStatus(BaseModel):
    """One progress report of an agent-triggered replay."""
    status: ToolSearchPhase
    message: str
    count: int | None = None
    current: int | None = None
    total: int | None = None
    thread_count: int | None = None
