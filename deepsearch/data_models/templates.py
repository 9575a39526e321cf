"""
deepsearch/data_models/templates.py

Data models for captured request templates.

Contains:
- RequestKind: The two upstream GraphQL operations that can be replayed
- RequestTemplate: A captured, reusable request shape (hash + headers + payload skeleton)
- PendingCapture: A body observation waiting for its matching header observation
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class RequestKind(StrEnum):
    """Upstream GraphQL operations that are captured and replayed."""
    SEARCH_QUERY = "searchPost"   # search results for a query
    DETAIL_FETCH = "FeedItem"     # one post with its full comment tree

    @property
    def endpoint_path(self) -> str:
        """Path of the GraphQL endpoint for this kind."""
        return f"/api/gql/{self.value}"

    @classmethod
    def from_url(cls, url: str) -> "RequestKind | None":
        """
        Classify a request URL.

        Args:
            url: The observed request URL.

        Returns:
            The matching RequestKind, or None if the URL is not a tracked endpoint.
        """
        for kind in cls:
            if kind.endpoint_path in url:
                return kind
        return None


def extract_query_hash(payload: Any) -> str | None:
    """Return the persisted-query hash of a GraphQL payload, if present."""
    if not isinstance(payload, dict):
        return None
    extensions = payload.get("extensions")
    if not isinstance(extensions, dict):
        return None
    persisted_query = extensions.get("persistedQuery")
    if not isinstance(persisted_query, dict):
        return None
    query_hash = persisted_query.get("sha256Hash")
    return query_hash if isinstance(query_hash, str) and query_hash else None


class RequestTemplate(BaseModel):
    """
    A captured request shape for one endpoint kind.

    Only produced once both the request body (carrying the persisted-query hash)
    and the final header set of the same request occurrence were observed.
    """
    kind: RequestKind = Field(description="Which endpoint this template replays")
    query_hash: str = Field(description="Persisted-query sha256 hash required by the upstream")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Header map in the order the browser sent it (forbidden headers removed)"
    )
    payload_skeleton: dict[str, Any] = Field(description="The observed GraphQL payload, cloned per replay")
    captured_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the template was captured"
    )

    @field_validator("query_hash")
    @classmethod
    def _hash_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("query_hash must not be empty")
        return value


class PendingCapture(BaseModel):
    """A request body waiting for the header observation of the same request id."""
    request_id: str
    kind: RequestKind
    payload: dict[str, Any]
    expires_at: float = Field(description="Monotonic clock value after which the capture is abandoned")

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
