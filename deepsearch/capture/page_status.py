"""
deepsearch/capture/page_status.py

Tracks which Nextdoor page the user is on and which query they searched for.
"""

from urllib.parse import parse_qs, urlparse

from pydantic import BaseModel

from deepsearch.session import SessionContext


NEXTDOOR_HOST = "nextdoor.com"
SEARCH_PATH_FRAGMENT = "/search/posts"


class PageStatus(BaseModel):
    """What a visited URL tells about the user's browsing."""
    is_nextdoor: bool = False
    is_search: bool = False
    query: str | None = None


def parse_page_status(url: str) -> PageStatus:
    """
    Classify a visited URL.

    Args:
        url: The URL of the page the user is on.

    Returns:
        PageStatus for the URL; unparseable URLs count as not on Nextdoor.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return PageStatus()

    host = (parsed.hostname or "").lower()
    if host != NEXTDOOR_HOST and not host.endswith("." + NEXTDOOR_HOST):
        return PageStatus()

    is_search = SEARCH_PATH_FRAGMENT in parsed.path
    query = None
    if is_search:
        values = parse_qs(parsed.query).get("query")
        query = values[0] if values else None
    return PageStatus(is_nextdoor=True, is_search=is_search, query=query)


def apply_page_status(session: SessionContext, status: PageStatus) -> None:
    """Copy a page status onto the session; a non-empty query also becomes the last query."""
    session.is_on_nextdoor = status.is_nextdoor
    session.is_on_search_page = status.is_search
    session.current_query = status.query
    if status.query:
        session.last_query = status.query
