"""
deepsearch/replay/orchestrator.py

Runs a replay: one search request, then one detail request per result.

Contains:
- ReplayOrchestrator.run_search: the user-triggered run with progress reporting
- ReplayOrchestrator.run_tool_search: the agent-triggered run (capped, with status events)
- ReplayOrchestrator.resolve_query: which query a run uses when none is given
"""

import copy
import re
import time
import uuid
from collections.abc import Callable
from typing import Any

from deepsearch.capture.template_store import RequestTemplateStore
from deepsearch.config import Config
from deepsearch.data_models.templates import RequestKind, RequestTemplate
from deepsearch.data_models.threads import (
    ItemError,
    SearchProgress,
    SearchResult,
    SearchSession,
    Thread,
    ToolSearchPhase,
    ToolSearchStatus,
)
from deepsearch.replay.comment_extractor import CommentTreeExtractor, dig
from deepsearch.replay.transport import ReplayTransport
from deepsearch.session import SessionContext
from deepsearch.utils.exceptions import (
    DeepSearchError,
    ItemFetchFailure,
    NoQueryAvailableError,
    UpstreamQueryError,
)
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


POST_ID_PATTERN = re.compile(r"/p/([^?/]+)")
FEED_ITEM_ID_PREFIX = "sharedPost_"

ProgressSink = Callable[[SearchProgress], None]
StatusSink = Callable[[ToolSearchStatus], None]


def extract_post_ids(search_response: dict[str, Any]) -> list[str]:
    """
    Read the post ids out of a search response, in result order.

    The POST result view is preferred; otherwise the first view is used.
    Duplicates are kept.
    """
    views = dig(search_response, "data", "searchPostFeed", "searchResultView")
    if not isinstance(views, list) or not views:
        return []
    view = next((v for v in views if isinstance(v, dict) and v.get("type") == "POST"), views[0])

    edges = dig(view, "searchResultItems", "edges")
    if not isinstance(edges, list):
        return []

    post_ids: list[str] = []
    for edge in edges:
        url = dig(edge, "node", "url")
        if not isinstance(url, str):
            continue
        match = POST_ID_PATTERN.search(url)
        if match:
            post_ids.append(match.group(1))
    return post_ids


def raise_for_graphql_errors(response: dict[str, Any]) -> None:
    """
    Raises:
        UpstreamQueryError: If the response carries a non-empty `errors` array.
    """
    errors = response.get("errors")
    if not errors:
        return
    first = errors[0] if isinstance(errors, list) else None
    message = first.get("message") if isinstance(first, dict) else None
    raise UpstreamQueryError(f"GraphQL error: {message or 'Unknown error'}")


class ReplayOrchestrator:
    """
    Replays captured templates to fetch full threads for a query.

    Detail requests are strictly sequential with a fixed delay between them.
    A failed detail request is recorded and the run continues.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        session: SessionContext,
        store: RequestTemplateStore,
        transport: ReplayTransport,
        extractor: CommentTreeExtractor | None = None,
        delay_seconds: float = Config.REPLAY_DELAY_SECONDS,
        tool_max_items: int = Config.TOOL_SEARCH_MAX_ITEMS,
        session_header_name: str = Config.SESSION_HEADER_NAME,
    ) -> None:
        self._session = session
        self._store = store
        self._transport = transport
        self._extractor = extractor or CommentTreeExtractor()
        self._delay_seconds = delay_seconds
        self._tool_max_items = tool_max_items
        self._session_header_name = session_header_name
        self.current_session: SearchSession | None = None

    # Public methods _______________________________________________________________________________________________________

    def resolve_query(self, explicit: str | None = None) -> str:
        """
        Pick the query for a run.

        Order: the explicit query, the query of the page the user is on, the
        last query the user searched for, the query inside the search template.

        Raises:
            NoQueryAvailableError: If none of these is available.
        """
        candidates = [explicit, self._session.current_query, self._session.last_query]
        template = self._store.get(RequestKind.SEARCH_QUERY)
        if template is not None:
            candidates.append(dig(template.payload_skeleton, "variables", "postSearchArgs", "query"))
        for candidate in candidates:
            if isinstance(candidate, str) and candidate.strip():
                return candidate
        raise NoQueryAvailableError("No search query available. Perform a search on Nextdoor first.")

    def run_search(self, query: str, progress_sink: ProgressSink | None = None) -> SearchResult:
        """
        Run a full replay for a query.

        Args:
            query: The search query.
            progress_sink: Called after every detail item with the updated progress.

        Returns:
            The threads fetched and the per-item errors.

        Raises:
            MissingTemplateError: If either template has not been captured.
            RunInProgressError: If another replay run is active.
            TransportError: If the search request itself fails.
        """
        search_template = self._store.require(RequestKind.SEARCH_QUERY)
        detail_template = self._store.require(RequestKind.DETAIL_FETCH)

        with self._session.replay_run():
            self.current_session = SearchSession(query=query)
            self._session.progress = self.current_session.progress
            logger.info("Starting search for %r", query)

            post_ids = self._search(search_template, query)
            logger.info("Search for %r returned %d posts", query, len(post_ids))

            self._fetch_details(post_ids, detail_template, self.current_session, progress_sink=progress_sink)
            return self._finish(self.current_session)

    def run_tool_search(self, query: str, status_sink: StatusSink | None = None) -> SearchResult:
        """
        Run a replay on behalf of the agent.

        Same algorithm as run_search with the number of detail items capped
        and status events for the agent's UI.

        Args:
            query: The search query chosen by the model.
            status_sink: Receives searching / found_posts / fetching_thread / complete statuses.
        """
        search_template = self._store.require(RequestKind.SEARCH_QUERY)
        detail_template = self._store.require(RequestKind.DETAIL_FETCH)

        def emit(status: ToolSearchStatus) -> None:
            if status_sink is not None:
                status_sink(status)

        with self._session.replay_run():
            session = SearchSession(query=query)
            emit(ToolSearchStatus(status=ToolSearchPhase.SEARCHING, message=f'Searching for "{query}"...'))

            post_ids = self._search(search_template, query, fresh_request_ids=True)
            emit(ToolSearchStatus(
                status=ToolSearchPhase.FOUND_POSTS,
                message=f"Found {len(post_ids)} posts",
                count=len(post_ids),
            ))

            limited_ids = post_ids[:self._tool_max_items]
            self._fetch_details(limited_ids, detail_template, session, status_sink=emit)

            result = self._finish(session)
            emit(ToolSearchStatus(
                status=ToolSearchPhase.COMPLETE,
                message="Search complete",
                thread_count=result.thread_count,
            ))
            return result

    # Private methods ______________________________________________________________________________________________________

    def _headers_for(self, template: RequestTemplate) -> dict[str, str]:
        """Template headers, with the live session identifier when the template lacks one."""
        headers = dict(template.headers)
        has_session_header = any(name.lower() == self._session_header_name.lower() for name in headers)
        if not has_session_header and self._session.session_identifier:
            headers[self._session_header_name] = self._session.session_identifier
        return headers

    def _search(self, template: RequestTemplate, query: str, fresh_request_ids: bool = False) -> list[str]:
        payload = copy.deepcopy(template.payload_skeleton)
        variables = payload.setdefault("variables", {})
        search_args = variables.setdefault("postSearchArgs", {})
        search_args["query"] = query
        if fresh_request_ids:
            search_args["requestId"] = str(uuid.uuid4())
            search_args["clientContextId"] = str(uuid.uuid4())

        response = self._transport.post(RequestKind.SEARCH_QUERY, self._headers_for(template), payload)
        raise_for_graphql_errors(response)
        return extract_post_ids(response)

    def _fetch_thread(self, template: RequestTemplate, post_id: str) -> Thread:
        """
        Raises:
            ItemFetchFailure: If the detail request fails or carries no post.
        """
        payload = copy.deepcopy(template.payload_skeleton)
        payload.setdefault("variables", {})["feedItemId"] = f"{FEED_ITEM_ID_PREFIX}{post_id}"
        try:
            response = self._transport.post(RequestKind.DETAIL_FETCH, self._headers_for(template), payload)
            raise_for_graphql_errors(response)
        except DeepSearchError as e:
            raise ItemFetchFailure(str(e), item_id=post_id) from e

        post = dig(response, "data", "feedItem", "post")
        if not isinstance(post, dict):
            raise ItemFetchFailure("Post not found in response", item_id=post_id)
        return self._extractor.build_thread(post_id, post)

    def _fetch_details(
        self,
        post_ids: list[str],
        template: RequestTemplate,
        session: SearchSession,
        progress_sink: ProgressSink | None = None,
        status_sink: StatusSink | None = None,
    ) -> None:
        total = len(post_ids)
        session.progress.total = total
        if progress_sink is not None:
            progress_sink(session.progress.model_copy())

        for index, post_id in enumerate(post_ids):
            if status_sink is not None:
                status_sink(ToolSearchStatus(
                    status=ToolSearchPhase.FETCHING_THREAD,
                    message=f"Fetching thread {index + 1}/{total}",
                    current=index + 1,
                    total=total,
                ))

            try:
                session.threads.append(self._fetch_thread(template, post_id))
            except ItemFetchFailure as e:
                logger.error("Failed to fetch post %s: %s", post_id, e)
                session.errors.append(ItemError(item_id=e.item_id, reason=str(e)))
                session.progress.error_count += 1

            session.progress.current = index + 1
            if progress_sink is not None:
                progress_sink(session.progress.model_copy())

            if index < total - 1:
                time.sleep(self._delay_seconds)

    def _finish(self, session: SearchSession) -> SearchResult:
        result = SearchResult(
            query=session.query,
            threads=session.threads,
            errors=session.errors,
            total_comment_count=sum(self._extractor.count_all(t.comments) for t in session.threads),
        )
        logger.info(
            "Search for %r complete: %d threads, %d comments, %d errors",
            result.query, result.thread_count, result.total_comment_count, len(result.errors),
        )
        return result
