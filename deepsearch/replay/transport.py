"""
deepsearch/replay/transport.py

HTTP transport for replayed GraphQL requests.

Requests go out through a requests.Session whose cookie jar is fed from the
Cookie headers observed on the user's own traffic; cookies never enter a
template or the disk.
"""

from http.cookies import CookieError, SimpleCookie
from typing import Any

import requests

from deepsearch.capture.correlator import is_forbidden_header
from deepsearch.config import Config
from deepsearch.data_models.events import REPLAY_ORIGINATOR_ID, HeadersObservedEvent, SessionChannels
from deepsearch.data_models.templates import RequestKind
from deepsearch.utils.exceptions import TransportError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


class ReplayTransport:
    """
    Sends replayed requests to the upstream GraphQL endpoints.
    """

    SUBSCRIBER_NAME: str = "replay-transport-cookies"

    def __init__(
        self,
        base_url: str = Config.NEXTDOOR_BASE_URL,
        timeout: float = Config.REPLAY_REQUEST_TIMEOUT,
        http_session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            base_url: Scheme and host of the upstream service.
            timeout: Per-request timeout in seconds.
            http_session: Session to send through; a new one is created if omitted.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http_session = http_session or requests.Session()

    def attach(self, channels: SessionChannels) -> None:
        """Subscribe the cookie absorber to the headers stream."""
        channels.headers_observed.subscribe(self.SUBSCRIBER_NAME, self.on_headers_observed)

    def on_headers_observed(self, event: HeadersObservedEvent) -> None:
        """Absorb the cookies the browser sent with an observed request."""
        if event.originator_id == REPLAY_ORIGINATOR_ID:
            return
        for name, value in event.headers:
            if name.lower() != "cookie":
                continue
            cookie = SimpleCookie()
            try:
                cookie.load(value)
            except CookieError:
                logger.debug("Ignoring unparseable Cookie header on request %s", event.request_id)
                continue
            for morsel in cookie.values():
                self.http_session.cookies.set(morsel.key, morsel.value)

    def url_for(self, kind: RequestKind) -> str:
        return f"{self.base_url}{kind.endpoint_path}?"

    def post(self, kind: RequestKind, headers: dict[str, str], payload: dict[str, Any]) -> dict[str, Any]:
        """
        Replay one request.

        Args:
            kind: Which endpoint to call.
            headers: Template headers; transport-managed headers are dropped.
            payload: The JSON payload.

        Returns:
            The decoded JSON response body.

        Raises:
            TransportError: On network failure, non-2xx status or a non-JSON body.
        """
        outgoing = {name: value for name, value in headers.items() if not is_forbidden_header(name)}
        try:
            response = self.http_session.post(
                self.url_for(kind),
                headers=outgoing,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Request failed: {e}")

        if not 200 <= response.status_code < 300:
            raise TransportError(f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise TransportError("Response is not JSON")
        if not isinstance(data, dict):
            raise TransportError("Response is not a JSON object")
        return data
