"""
deepsearch/capture/template_store.py

Holds at most one live RequestTemplate per RequestKind.

Contains:
- RequestTemplateStore: get/put/merge plus JSON persistence hooks
- SENSITIVE_HEADER_NAMES: headers stripped from persisted templates by default
"""

import json
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from deepsearch.config import Config
from deepsearch.data_models.events import TemplateCaptured
from deepsearch.data_models.templates import RequestKind, RequestTemplate
from deepsearch.utils.event_channel import EventChannel
from deepsearch.utils.exceptions import MissingTemplateError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


SENSITIVE_HEADER_NAMES: frozenset[str] = frozenset({
    "authorization",
    "cookie",
    "x-csrftoken",
    Config.SESSION_HEADER_NAME.lower(),
})

MISSING_TEMPLATE_MESSAGES: dict[RequestKind, str] = {
    RequestKind.SEARCH_QUERY: "No searchPost template. Perform a search on Nextdoor first.",
    RequestKind.DETAIL_FETCH: "No FeedItem template. Click on a post on Nextdoor first.",
}


def strip_sensitive_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of the headers without session-identifying values."""
    return {name: value for name, value in headers.items() if name.lower() not in SENSITIVE_HEADER_NAMES}


class RequestTemplateStore:
    """
    Store of the current request templates, one per kind.

    A new template for a kind overwrites the previous one and is broadcast on
    the templates channel. When a persistence path is configured the store is
    written after every change.
    """

    def __init__(
        self,
        templates_channel: EventChannel[TemplateCaptured] | None = None,
        persist_path: str | Path | None = None,
        persist_sensitive_headers: bool = Config.PERSIST_SENSITIVE_HEADERS,
    ) -> None:
        """
        Initialize the store.

        Args:
            templates_channel: Channel on which every stored template is broadcast.
            persist_path: JSON file used by save()/load(); None disables persistence.
            persist_sensitive_headers: Keep session-identifying headers in the JSON file.
        """
        self._templates: dict[RequestKind, RequestTemplate] = {}
        self._channel = templates_channel
        self._persist_path = Path(persist_path) if persist_path else None
        self._persist_sensitive_headers = persist_sensitive_headers

    ## Access

    def get(self, kind: RequestKind) -> RequestTemplate | None:
        return self._templates.get(kind)

    def has(self, kind: RequestKind) -> bool:
        return kind in self._templates

    def require(self, kind: RequestKind) -> RequestTemplate:
        """
        Return the template of a kind.

        Raises:
            MissingTemplateError: If no template of that kind has been captured.
        """
        template = self._templates.get(kind)
        if template is None:
            raise MissingTemplateError(MISSING_TEMPLATE_MESSAGES[kind], kind=kind.value)
        return template

    def snapshot(self) -> dict[RequestKind, RequestTemplate]:
        return dict(self._templates)

    ## Mutation

    def put(self, template: RequestTemplate, persist: bool = True) -> None:
        """
        Store a template, replacing any previous template of the same kind.

        Args:
            template: The completed template.
            persist: Write the store to disk afterwards (when a path is configured).
        """
        self._templates[template.kind] = template
        logger.info(
            "Stored %s template (hash %s, %d headers)",
            template.kind.value, template.query_hash[:12], len(template.headers),
        )
        if self._channel is not None:
            self._channel.publish(TemplateCaptured(template=template))
        if persist:
            self.save()

    def merge(self, templates: Iterable[RequestTemplate]) -> int:
        """
        Merge templates into the store; for each kind the most recently captured wins.

        Returns:
            Number of templates that were stored.
        """
        stored = 0
        for template in templates:
            current = self._templates.get(template.kind)
            if current is not None and current.captured_at >= template.captured_at:
                continue
            self.put(template, persist=False)
            stored += 1
        if stored:
            self.save()
        return stored

    def clear(self) -> None:
        self._templates = {}

    ## Persistence hooks

    def save(self) -> Path | None:
        """
        Write the templates as JSON.

        Returns:
            The path written, or None when persistence is disabled.
        """
        if self._persist_path is None:
            return None

        records = []
        for template in self._templates.values():
            data = template.model_dump(mode="json")
            if not self._persist_sensitive_headers:
                data["headers"] = strip_sensitive_headers(template.headers)
            records.append(data)

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(json.dumps({"templates": records}, indent=2), encoding="utf-8")
        logger.debug("Persisted %d templates to %s", len(records), self._persist_path)
        return self._persist_path

    def load(self) -> int:
        """
        Load persisted templates, keeping newer in-memory ones.

        Returns:
            Number of templates loaded.
        """
        if self._persist_path is None or not self._persist_path.exists():
            return 0

        try:
            data = json.loads(self._persist_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read persisted templates from %s: %s", self._persist_path, e)
            return 0

        loaded: list[RequestTemplate] = []
        for record in data.get("templates", []):
            try:
                loaded.append(RequestTemplate.model_validate(record))
            except ValidationError as e:
                logger.warning("Skipping invalid persisted template: %s", e)
        count = self.merge(loaded)
        logger.info("Loaded %d persisted templates from %s", count, self._persist_path)
        return count
