"""
deepsearch/replay/formatting.py

Text renderings of fetched threads.

Contains:
- format_threads_for_llm: the corpus fed to the conversational agent
- format_markdown / markdown_filename: the downloadable report
"""

import re
from datetime import date, datetime, timezone
from urllib.parse import quote

from deepsearch.data_models.threads import Comment, SearchResult, Thread
from deepsearch.replay.comment_extractor import CommentTreeExtractor

SEARCH_PAGE_URL = "https://nextdoor.com/search/posts/?query={query}"
EMPTY_BODY = "(empty)"
NO_SUBJECT = "(No subject)"


def _business_line(comment: Comment, indent: str, markdown: bool) -> str:
    business = comment.business
    name = f"**{business.name}**" if markdown else f"{business.name}"
    line = f"{indent}Business: {name}"
    if business.category:
        line += f" ({business.category})"
    if business.faves:
        line += f" - {business.faves} faves"
    if business.address:
        line += f"\n{indent}Address: {business.address}"
    return line + "\n"


# LLM context _____________________________________________________________________________________

def format_comment_for_llm(comment: Comment, level: int = 0) -> str:
    """Render a comment and its replies, indented two spaces per nesting level."""
    parts: list[str] = []
    stack: list[tuple[Comment, int]] = [(comment, level)]
    while stack:
        current, current_level = stack.pop()
        indent = "  " * current_level
        text = f"\n{indent}- {current.author} ({current.location}) - {current.created_at}"
        if current_level > 0:
            text += f" [Reply level {current_level}]"
        text += "\n"
        for line in (current.body or EMPTY_BODY).split("\n"):
            text += f"{indent}  {line}\n"
        if current.phone:
            text += f"{indent}  Phone: {current.phone}\n"
        if current.business:
            text += _business_line(current, indent + "  ", markdown=False)
        parts.append(text)
        stack.extend((reply, current_level + 1) for reply in reversed(current.replies))
    return "".join(parts)


def format_threads_for_llm(threads: list[Thread], query: str) -> str:
    """
    Render threads as plain text for the model.

    Args:
        threads: The fetched threads.
        query: The query that produced them.

    Returns:
        The corpus text.
    """
    text = f'Search Query: "{query}"\n\n'
    text += f"Found {len(threads)} threads with discussions:\n\n"

    for index, thread in enumerate(threads, start=1):
        post = thread.original_post
        text += f"\n=== THREAD {index} ===\n"
        text += f"URL: {thread.url}\n"
        text += f"Subject: {post.subject or NO_SUBJECT}\n"
        text += f"Author: {post.author} ({post.location})\n"
        text += f"Posted: {post.created_at}\n\n"
        text += f"Original Post:\n{post.body or EMPTY_BODY}\n\n"

        if thread.comments:
            total = CommentTreeExtractor.count_all(thread.comments)
            text += f"Comments ({total} total, {len(thread.comments)} top-level):\n"
            for comment in thread.comments:
                text += format_comment_for_llm(comment)
        text += "\n"

    return text


# Markdown export _________________________________________________________________________________

def format_comment_markdown(comment: Comment, level: int = 0) -> str:
    """Render a comment and its replies as markdown, indented two spaces per nesting level."""
    parts: list[str] = []
    stack: list[tuple[Comment, int]] = [(comment, level)]
    while stack:
        current, current_level = stack.pop()
        indent = "  " * current_level
        md = f"{indent}---\n\n"
        md += f"{indent}**{current.author}** ({current.location}) - {current.created_at}"
        if current_level > 0:
            md += f" *[Reply level {current_level}]*"
        md += "\n\n"
        for line in (current.body or EMPTY_BODY).split("\n"):
            md += f"{indent}{line}\n"
        md += "\n"
        if current.phone:
            md += f"{indent}Phone: `{current.phone}`\n\n"
        if current.business:
            md += _business_line(current, indent, markdown=True) + "\n"
        parts.append(md)
        stack.extend((reply, current_level + 1) for reply in reversed(current.replies))
    return "".join(parts)


def format_markdown(result: SearchResult, generated_at: datetime | None = None) -> str:
    """
    Render a search result as a markdown report.

    Args:
        result: The completed search.
        generated_at: Timestamp printed in the header; defaults to now (UTC).
    """
    generated_at = generated_at or datetime.now(timezone.utc)

    md = f'# Nextdoor Deep Search: "{result.query}"\n\n'
    md += f"**Generated:** {generated_at.isoformat()}\n"
    md += f"**Search URL:** {SEARCH_PAGE_URL.format(query=quote(result.query, safe=''))}\n"
    md += f"**Threads:** {result.thread_count}\n"
    md += f"**Total Comments:** {result.total_comment_count}\n"
    if result.errors:
        md += f"**Errors:** {len(result.errors)}\n"
    md += "\n---\n\n"

    for thread in result.threads:
        post = thread.original_post
        total = CommentTreeExtractor.count_all(thread.comments)
        md += f"## {post.subject or NO_SUBJECT}\n\n"
        md += f"**Post URL:** {thread.url}\n"
        md += f"**Author:** {post.author} ({post.location})\n"
        md += f"**Posted:** {post.created_at}\n"
        md += f"**Comments:** {total} ({len(thread.comments)} top-level)\n\n"
        md += "### Original Post\n\n"
        quoted = post.body.replace("\n", "\n> ") if post.body else EMPTY_BODY
        md += f"> {quoted}\n\n"

        if thread.comments:
            md += "### Comments\n\n"
            for comment in thread.comments:
                md += format_comment_markdown(comment)
        md += "\n---\n\n"

    if result.errors:
        md += "## Errors\n\n"
        for error in result.errors:
            md += f"- Post {error.item_id}: {error.reason}\n"

    return md


def markdown_filename(query: str, day: date | None = None) -> str:
    """File name of the markdown report, e.g. `nextdoor-best-plumber-2024-05-01.md`."""
    day = day or datetime.now(timezone.utc).date()
    slug = re.sub(r"[^a-zA-Z0-9]", "-", query)
    return f"nextdoor-{slug}-{day.isoformat()}.md"
