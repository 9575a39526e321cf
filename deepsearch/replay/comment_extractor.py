"""
deepsearch/replay/comment_extractor.py

Flattens the nested comment tree of a fetched post.

The upstream schema has carried replies under several field names; the
candidate locations are tried in the order of REPLY_EDGE_PATHS and the first
non-empty list wins. Traversal is iterative, bounded by a maximum depth.
"""

from typing import Any

from deepsearch.config import Config
from deepsearch.data_models.threads import Business, Comment, Post, Thread
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


# Candidate locations of a comment's reply edges, in priority order
REPLY_EDGE_PATHS: tuple[tuple[str, ...], ...] = (
    ("replies", "pagedComments", "edges"),
    ("replies", "edges"),
    ("childComments", "pagedComments", "edges"),
    ("childComments", "edges"),
    ("responses", "pagedComments", "edges"),
    ("responses", "edges"),
    ("nestedComments", "pagedComments", "edges"),
    ("nestedComments", "edges"),
)

TOP_LEVEL_EDGE_PATH: tuple[str, ...] = ("comments", "pagedComments", "edges")


def dig(data: Any, *path: str | int) -> Any:
    """
    Follow a path of keys/indices through nested dicts and lists.

    Returns:
        The value at the end of the path, or None if any step is missing.
    """
    current = data
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or not -len(current) <= step < len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class CommentTreeExtractor:
    """
    Builds Comment trees from the raw GraphQL post record.
    """

    def __init__(self, max_depth: int = Config.COMMENT_MAX_DEPTH) -> None:
        """
        Args:
            max_depth: Deepest nesting level kept; deeper replies are dropped.
        """
        self.max_depth = max_depth

    ## Extraction

    def extract(self, post: dict[str, Any]) -> list[Comment]:
        """
        Extract every comment of a post, with replies nested under their parents.

        Args:
            post: The `data.feedItem.post` record.

        Returns:
            Top-level comments in upstream order.
        """
        roots: list[Comment] = []
        # stack entries: (edge list, parent reply list, nesting level), consumed front to back
        stack: list[tuple[list[Any], list[Comment], int]] = []

        top_level_edges = dig(post, *TOP_LEVEL_EDGE_PATH)
        if isinstance(top_level_edges, list):
            stack.append((list(reversed(top_level_edges)), roots, 0))

        dropped = 0
        while stack:
            edges, siblings, level = stack[-1]
            if not edges:
                stack.pop()
                continue
            edge = edges.pop()
            record = dig(edge, "node", "comment")
            if not isinstance(record, dict):
                continue

            comment = self._build_comment(record, level)
            siblings.append(comment)

            reply_edges = self.find_reply_edges(record)
            if not reply_edges:
                continue
            if level + 1 > self.max_depth:
                dropped += len(reply_edges)
                continue
            stack.append((list(reversed(reply_edges)), comment.replies, level + 1))

        if dropped:
            logger.warning("Dropped %d replies nested deeper than %d levels", dropped, self.max_depth)
        return roots

    @staticmethod
    def find_reply_edges(record: dict[str, Any]) -> list[Any]:
        """Return the reply edges of a comment record from the first non-empty candidate path."""
        for path in REPLY_EDGE_PATHS:
            edges = dig(record, *path)
            if isinstance(edges, list) and edges:
                return edges
        return []

    @staticmethod
    def count_all(comments: list[Comment]) -> int:
        """Count every comment of a forest, replies included."""
        count = 0
        pending = list(comments)
        while pending:
            comment = pending.pop()
            count += 1
            pending.extend(comment.replies)
        return count

    def build_thread(self, item_id: str, post: dict[str, Any]) -> Thread:
        """
        Build a Thread from a fetched post record.

        Args:
            item_id: The post id taken from the search result URL.
            post: The `data.feedItem.post` record.
        """
        return Thread(
            id=item_id,
            url=Thread.url_for(item_id),
            original_post=Post(
                author=_as_text(dig(post, "author", "displayName")),
                location=_as_text(dig(post, "author", "originationNeighborhood", "displayLocation")),
                subject=_as_text(post.get("subject")),
                body=_as_text(post.get("body")),
                created_at=_as_text(dig(post, "createdAt", "asDateTime", "relativeTime")),
            ),
            comments=self.extract(post),
        )

    ## Field mapping

    def _build_comment(self, record: dict[str, Any], level: int) -> Comment:
        return Comment(
            author=_as_text(dig(record, "author", "displayName")),
            location=_as_text(dig(record, "author", "originationNeighborhood", "displayLocation")),
            body=_as_text(record.get("body")),
            created_at=_as_text(dig(record, "createdAt", "asDateTime", "relativeTime")),
            phone=self._find_phone(record),
            business=self._find_business(record),
            nesting_level=level,
        )

    @staticmethod
    def _find_phone(record: dict[str, Any]) -> str | None:
        styles = dig(record, "styledBody", "styles")
        if not isinstance(styles, list):
            return None
        for style in styles:
            phone = dig(style, "attributes", "action", "phoneNumber")
            if phone:
                return _as_text(phone)
        return None

    @staticmethod
    def _find_business(record: dict[str, Any]) -> Business | None:
        page = dig(record, "taggedContent", 0, "entityPage")
        if not isinstance(page, dict):
            return None
        faves = dig(page, "faveCount", "value")
        return Business(
            name=_as_text(page.get("name")),
            category=_as_text(dig(page, "categoryInfo", "displayCategory", "styledName", "text")),
            faves=faves if isinstance(faves, int) and not isinstance(faves, bool) else None,
            address=_as_text(dig(page, "address", "fullAddress")),
        )
