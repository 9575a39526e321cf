"""
deepsearch/capture/correlator.py

Pairs request-body observations with request-header observations.

The two observation streams arrive independently and out of band; only a
body and a header set observed for the same request id within the capture
TTL become a RequestTemplate. Traffic produced by the replay machinery is
never captured.
"""

import json
import time
from collections.abc import Callable
from datetime import datetime, timezone

from deepsearch.capture.template_store import RequestTemplateStore
from deepsearch.config import Config
from deepsearch.data_models.events import (
    REPLAY_ORIGINATOR_ID,
    BodyObservedEvent,
    HeadersObservedEvent,
    SessionChannels,
    SessionIdentifierChanged,
)
from deepsearch.data_models.templates import (
    PendingCapture,
    RequestKind,
    RequestTemplate,
    extract_query_hash,
)
from deepsearch.session import SessionContext
from deepsearch.utils.exceptions import CaptureParseFailure
from deepsearch.utils.logger import get_logger, redact

logger = get_logger(name=__name__)


# Headers the replay transport sets itself (or that carry ambient credentials)
FORBIDDEN_HEADER_NAMES: frozenset[str] = frozenset({"host", "connection", "content-length", "cookie"})


def is_forbidden_header(name: str) -> bool:
    """True for transport-managed headers and HTTP/2 pseudo-headers."""
    return name.startswith(":") or name.lower() in FORBIDDEN_HEADER_NAMES


def parse_capture_body(raw_body: bytes | None) -> tuple[dict, str]:
    """
    Decode an observed request body.

    Args:
        raw_body: Raw request body bytes.

    Returns:
        The payload object and its persisted-query hash.

    Raises:
        CaptureParseFailure: If the body is empty, not JSON, not an object or carries no hash.
    """
    if not raw_body:
        raise CaptureParseFailure("Empty request body")
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CaptureParseFailure(f"Request body is not JSON: {e}")
    if not isinstance(payload, dict):
        raise CaptureParseFailure("Request body is not a JSON object")
    query_hash = extract_query_hash(payload)
    if query_hash is None:
        raise CaptureParseFailure("Request body has no persisted-query hash")
    return payload, query_hash


class CaptureCorrelator:
    """
    Joins body and header observations into request templates.

    Pending captures are keyed by request id and expire after the capture TTL.
    Expiry is evaluated lazily whenever an observation arrives.
    """

    SUBSCRIBER_NAME: str = "capture-correlator"

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        session: SessionContext,
        store: RequestTemplateStore,
        channels: SessionChannels | None = None,
        ttl_seconds: float = Config.CAPTURE_TTL_SECONDS,
        session_header_name: str = Config.SESSION_HEADER_NAME,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the correlator.

        Args:
            session: The shared session context.
            store: Template store receiving completed templates.
            channels: Channels to publish session identifier changes on.
            ttl_seconds: Seconds a body observation waits for its headers.
            session_header_name: Name of the session-identifying header.
            clock: Monotonic clock; injectable for tests.
        """
        self._session = session
        self._store = store
        self._channels = channels
        self._ttl_seconds = ttl_seconds
        self._session_header_name = session_header_name.lower()
        self._clock = clock
        self._pending: dict[str, PendingCapture] = {}

    # Properties ___________________________________________________________________________________________________________

    @property
    def pending_count(self) -> int:
        """Number of live pending captures."""
        self._purge_expired()
        return len(self._pending)

    # Public methods _______________________________________________________________________________________________________

    def attach(self, channels: SessionChannels) -> None:
        """Subscribe to both observation streams."""
        self._channels = channels
        channels.body_observed.subscribe(self.SUBSCRIBER_NAME, self.on_body_observed)
        channels.headers_observed.subscribe(self.SUBSCRIBER_NAME, self.on_headers_observed)

    def on_body_observed(self, event: BodyObservedEvent) -> None:
        """Record the body of a tracked request as a pending capture."""
        self._purge_expired()

        if event.originator_id == REPLAY_ORIGINATOR_ID:
            return
        kind = RequestKind.from_url(event.url)
        if kind is None:
            return
        if self._session.is_running:
            logger.debug("Ignoring %s body while a replay run is active", kind.value)
            return

        try:
            payload, query_hash = parse_capture_body(event.raw_body)
        except CaptureParseFailure as e:
            logger.debug("Dropping %s body for request %s: %s", kind.value, event.request_id, e)
            return

        self._pending[event.request_id] = PendingCapture(
            request_id=event.request_id,
            kind=kind,
            payload=payload,
            expires_at=self._clock() + self._ttl_seconds,
        )
        logger.debug("Pending %s capture for request %s (hash %s)", kind.value, event.request_id, query_hash[:12])

    def on_headers_observed(self, event: HeadersObservedEvent) -> None:
        """Complete a pending capture with the final header set."""
        self._purge_expired()

        if event.originator_id == REPLAY_ORIGINATOR_ID:
            return

        self._track_session_identifier(event.headers)

        pending = self._pending.pop(event.request_id, None)
        if pending is None:
            return

        headers: dict[str, str] = {}
        for name, value in event.headers:
            if not is_forbidden_header(name):
                headers[name] = value

        template = RequestTemplate(
            kind=pending.kind,
            query_hash=extract_query_hash(pending.payload),
            headers=headers,
            payload_skeleton=pending.payload,
        )
        self._store.put(template)

    # Private methods ______________________________________________________________________________________________________

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [request_id for request_id, pending in self._pending.items() if pending.is_expired(now)]
        for request_id in expired:
            logger.debug("Pending capture for request %s expired", request_id)
            del self._pending[request_id]

    def _track_session_identifier(self, headers: list[tuple[str, str]]) -> None:
        value = next(
            (v for name, v in headers if name.lower() == self._session_header_name and v),
            None,
        )
        if value is None or value == self._session.session_identifier:
            return

        captured_at = datetime.now(timezone.utc)
        self._session.session_identifier = value
        self._session.session_identifier_captured_at = captured_at
        logger.info("Session identifier captured: %s", redact(value))
        if self._channels is not None:
            self._channels.session_identifier.publish(
                SessionIdentifierChanged(value=value, captured_at=captured_at)
            )
