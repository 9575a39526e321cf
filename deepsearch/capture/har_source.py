"""
deepsearch/capture/har_source.py

Observation source reading a browser HAR export.

A HAR recorded while browsing Nextdoor contains the same body and header
observations the capture layer expects from live traffic; publishing them
seeds the template store without a browser attached.
"""

import json
from collections.abc import Iterator
from pathlib import Path

from deepsearch.data_models.events import BodyObservedEvent, HeadersObservedEvent, SessionChannels
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


HAR_ORIGINATOR_ID = 0
GQL_PATH_FRAGMENT = "/api/gql/"


def iter_har_observations(path: str | Path) -> Iterator[tuple[BodyObservedEvent, HeadersObservedEvent]]:
    """
    Yield (body, headers) observation pairs for GraphQL POST entries of a HAR file.

    Args:
        path: Path to the HAR export.

    Yields:
        One pair per entry; both events share the request id `har-<index>`.

    Raises:
        ValueError: If the file is not a HAR document.
    """
    with open(path, encoding="utf-8") as f:
        har = json.load(f)

    log = har.get("log") if isinstance(har, dict) else None
    entries = log.get("entries") if isinstance(log, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"{path} is not a HAR file (no log.entries)")

    for index, entry in enumerate(entries):
        request = entry.get("request") if isinstance(entry, dict) else None
        if not isinstance(request, dict):
            continue
        url = request.get("url")
        method = request.get("method")
        if not isinstance(url, str) or not isinstance(method, str):
            continue
        if method.upper() != "POST" or GQL_PATH_FRAGMENT not in url:
            continue

        request_id = f"har-{index}"
        post_data = request.get("postData")
        text = post_data.get("text") if isinstance(post_data, dict) else None
        raw_headers = request.get("headers")
        headers = [
            (h["name"], str(h.get("value", "")))
            for h in (raw_headers if isinstance(raw_headers, list) else [])
            if isinstance(h, dict) and isinstance(h.get("name"), str) and h["name"] and not h["name"].startswith(":")
        ]

        yield (
            BodyObservedEvent(
                request_id=request_id,
                originator_id=HAR_ORIGINATOR_ID,
                url=url,
                raw_body=text.encode("utf-8") if isinstance(text, str) and text else None,
            ),
            HeadersObservedEvent(
                request_id=request_id,
                originator_id=HAR_ORIGINATOR_ID,
                url=url,
                headers=headers,
            ),
        )


def publish_har(path: str | Path, channels: SessionChannels) -> int:
    """
    Publish every GraphQL observation of a HAR file, body before headers.

    Returns:
        Number of entries published.
    """
    count = 0
    for body_event, headers_event in iter_har_observations(path):
        channels.body_observed.publish(body_event)
        channels.headers_observed.publish(headers_event)
        count += 1
    logger.info("Published %d GraphQL observations from %s", count, path)
    return count
