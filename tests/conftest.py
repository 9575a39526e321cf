"""
tests/conftest.py

Configuration for pytest.
"""

from collections.abc import Callable, Generator
from pathlib import Path
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from deepsearch.capture.template_store import RequestTemplateStore
from deepsearch.data_models.events import SessionChannels
from deepsearch.data_models.templates import RequestKind, RequestTemplate
from deepsearch.session import SessionContext


@pytest.fixture(autouse=True)
def mock_llm_sdk_clients() -> Generator[dict[str, MagicMock], None, None]:
    """
    Mock the OpenAI and Anthropic SDK clients to avoid needing real API keys in tests.

    Patches the client classes where the adapter modules import them, so tests
    can instantiate adapters without credentials or network access.
    """
    with (
        patch("deepsearch.llms.openai_adapter.OpenAI") as mock_openai,
        patch("deepsearch.llms.anthropic_adapter.Anthropic") as mock_anthropic,
    ):
        mock_openai.return_value = MagicMock()
        mock_anthropic.return_value = MagicMock()
        yield {"openai": mock_openai, "anthropic": mock_anthropic}


@pytest.fixture(scope="session")
def tests_root() -> Path:
    """
    Root directory for tests.
    Returns:
        Path to the tests directory.
    """
    return Path(__file__).parent.resolve()


# --- Core objects ---


@pytest.fixture
def session() -> SessionContext:
    """A fresh session context."""
    return SessionContext()


@pytest.fixture
def channels() -> SessionChannels:
    """Fresh event channels."""
    return SessionChannels()


@pytest.fixture
def store(channels: SessionChannels) -> RequestTemplateStore:
    """An in-memory template store broadcasting on the templates channel."""
    return RequestTemplateStore(templates_channel=channels.templates, persist_path=None)


# --- Payload factories ---


def make_search_payload(query: str = "plumber", query_hash: str = "search-hash-0001") -> dict[str, Any]:
    """A searchPost GraphQL payload as the browser sends it."""
    return {
        "operationName": "searchPost",
        "variables": {
            "postSearchArgs": {
                "query": query,
                "requestId": "browser-request-id",
                "clientContextId": "browser-context-id",
            },
        },
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": query_hash}},
    }


def make_feed_item_payload(post_id: str = "seed", query_hash: str = "feed-hash-0001") -> dict[str, Any]:
    """A FeedItem GraphQL payload as the browser sends it."""
    return {
        "operationName": "FeedItem",
        "variables": {"feedItemId": f"sharedPost_{post_id}"},
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": query_hash}},
    }


def make_search_response(post_urls: list[str], view_type: str = "POST") -> dict[str, Any]:
    """A searchPost response listing the given result URLs."""
    return {
        "data": {
            "searchPostFeed": {
                "searchResultView": [{
                    "type": view_type,
                    "searchResultItems": {
                        "edges": [{"node": {"url": url}} for url in post_urls],
                    },
                }],
            },
        },
    }


def make_comment_edge(
    author: str,
    body: str,
    replies: list[dict[str, Any]] | None = None,
    reply_path: tuple[str, ...] = ("replies", "pagedComments", "edges"),
    phone: str | None = None,
    business: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """A comment edge (`{node: {comment: ...}}`) with optional replies under reply_path."""
    comment: dict[str, Any] = {
        "author": {"displayName": author, "originationNeighborhood": {"displayLocation": "Maple Grove"}},
        "body": body,
        "createdAt": {"asDateTime": {"relativeTime": "2 days ago"}},
    }
    if phone:
        comment["styledBody"] = {"styles": [{"attributes": {}}, {"attributes": {"action": {"phoneNumber": phone}}}]}
    if business:
        comment["taggedContent"] = [{"entityPage": business}]
    if replies:
        container: dict[str, Any] = comment
        for key in reply_path[:-1]:
            container = container.setdefault(key, {})
        container[reply_path[-1]] = replies
    return {"node": {"comment": comment}}


def make_post(subject: str, comment_edges: list[dict[str, Any]]) -> dict[str, Any]:
    """A `data.feedItem.post` record."""
    return {
        "subject": subject,
        "body": f"Looking for help: {subject}",
        "author": {"displayName": "Pat", "originationNeighborhood": {"displayLocation": "Elm Park"}},
        "createdAt": {"asDateTime": {"relativeTime": "1 week ago"}},
        "comments": {"pagedComments": {"edges": comment_edges}},
    }


def make_feed_item_response(post: dict[str, Any] | None) -> dict[str, Any]:
    """A FeedItem response wrapping a post record."""
    return {"data": {"feedItem": {"post": post}}}


@pytest.fixture
def search_template() -> RequestTemplate:
    """A captured searchPost template."""
    return RequestTemplate(
        kind=RequestKind.SEARCH_QUERY,
        query_hash="search-hash-0001",
        headers={"accept": "application/json", "x-nd-uti": "uti-live-value", "x-csrftoken": "csrf"},
        payload_skeleton=make_search_payload(),
    )


@pytest.fixture
def detail_template() -> RequestTemplate:
    """A captured FeedItem template."""
    return RequestTemplate(
        kind=RequestKind.DETAIL_FETCH,
        query_hash="feed-hash-0001",
        headers={"accept": "application/json", "x-nd-uti": "uti-live-value"},
        payload_skeleton=make_feed_item_payload(),
    )


@pytest.fixture
def captured_store(
    store: RequestTemplateStore,
    search_template: RequestTemplate,
    detail_template: RequestTemplate,
) -> RequestTemplateStore:
    """A store holding both templates."""
    store.put(search_template)
    store.put(detail_template)
    return store


@pytest.fixture
def plumber_transport() -> MagicMock:
    """
    A fake transport answering a three-result search.

    Post "abc" has two top-level comments, one of them with a reply; post "def"
    fails upstream; post "ghi" has one comment. Total comments returned: 4.
    """
    posts = {
        "sharedPost_abc": make_post("Need a plumber", [
            make_comment_edge("Alice", "Call Bob's Plumbing", replies=[
                make_comment_edge("Carol", "+1 for Bob"),
            ], phone="555-0100"),
            make_comment_edge("Dan", "Try Acme Pipes"),
        ]),
        "sharedPost_ghi": make_post("Leaky faucet", [
            make_comment_edge("Erin", "Bob fixed mine"),
        ]),
    }

    def post(kind: RequestKind, headers: dict[str, str], payload: dict[str, Any]) -> dict[str, Any]:
        if kind == RequestKind.SEARCH_QUERY:
            return make_search_response([
                "https://nextdoor.com/p/abc?view=detail",
                "https://nextdoor.com/p/def",
                "/p/ghi/",
            ])
        feed_item_id = payload["variables"]["feedItemId"]
        if feed_item_id == "sharedPost_def":
            return {"errors": [{"message": "Post unavailable"}]}
        return make_feed_item_response(posts[feed_item_id])

    transport = MagicMock()
    transport.post.side_effect = post
    return transport


@pytest.fixture
def make_transport() -> Callable[[Callable[..., dict[str, Any]]], MagicMock]:
    """Factory wrapping a post(kind, headers, payload) function in a fake transport."""
    def factory(post: Callable[..., dict[str, Any]]) -> MagicMock:
        transport = MagicMock()
        transport.post.side_effect = post
        return transport
    return factory


@pytest.fixture
def payloads() -> SimpleNamespace:
    """The payload factories of this module, for use inside tests."""
    return SimpleNamespace(
        search_payload=make_search_payload,
        feed_item_payload=make_feed_item_payload,
        search_response=make_search_response,
        comment_edge=make_comment_edge,
        post=make_post,
        feed_item_response=make_feed_item_response,
    )
