"""
deepsearch/service.py

Command and status interface of the deep search system.

Contains:
- DeepSearchService: wires capture, replay and the agent around one session context
- handle_command: dispatch of UI commands to service operations
"""

import json
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from deepsearch.agents.conversational_agent import ConversationalAgent
from deepsearch.agents.prompts import DEFAULT_ANALYSIS_PROMPT
from deepsearch.capture.correlator import CaptureCorrelator
from deepsearch.capture.page_status import apply_page_status, parse_page_status
from deepsearch.capture.template_store import RequestTemplateStore
from deepsearch.config import Config
from deepsearch.data_models.events import (
    BodyObservedEvent,
    HeadersObservedEvent,
    NoticeType,
    SessionChannels,
    UINotice,
)
from deepsearch.data_models.llms.vendors import ProviderConfig
from deepsearch.data_models.status import (
    Command,
    CommandResponse,
    CommandType,
    Readiness,
    ResponseType,
    StatusSnapshot,
)
from deepsearch.data_models.templates import RequestKind
from deepsearch.data_models.threads import SearchProgress, SearchResult
from deepsearch.llms import AbstractProviderAdapter
from deepsearch.replay.formatting import format_markdown, markdown_filename
from deepsearch.replay.orchestrator import ReplayOrchestrator
from deepsearch.replay.transport import ReplayTransport
from deepsearch.session import SessionContext
from deepsearch.utils.exceptions import DeepSearchError, MissingSearchDataError, ProviderError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


class DeepSearchService:
    """
    The whole system behind one object.

    Observation events go in through `observe`, commands through
    `handle_command`; progress and agent output come out as notices on
    `channels.notices`.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        provider_config: ProviderConfig | None = None,
        session: SessionContext | None = None,
        channels: SessionChannels | None = None,
        store: RequestTemplateStore | None = None,
        transport: ReplayTransport | None = None,
        adapter: AbstractProviderAdapter | None = None,
        last_result_path: str | Path | None = Config.LAST_RESULT_PATH,
    ) -> None:
        """
        Build and wire every component.

        Args:
            provider_config: LLM backend configuration; read from the environment on first use if omitted.
            session: Session context; a fresh one is created if omitted.
            channels: Event channels; fresh ones are created if omitted.
            store: Template store; defaults to one persisting at Config.TEMPLATE_STORE_PATH.
            transport: Replay transport; defaults to one targeting Config.NEXTDOOR_BASE_URL.
            adapter: Provider adapter; built from the provider configuration if omitted.
            last_result_path: JSON snapshot of the last search result; None disables it.
        """
        self.session = session or SessionContext()
        self.channels = channels or SessionChannels()
        self.store = store or RequestTemplateStore(
            templates_channel=self.channels.templates,
            persist_path=Config.TEMPLATE_STORE_PATH,
        )
        self.store.load()

        self.correlator = CaptureCorrelator(session=self.session, store=self.store)
        self.correlator.attach(self.channels)
        self.transport = transport or ReplayTransport()
        self.transport.attach(self.channels)
        self.orchestrator = ReplayOrchestrator(session=self.session, store=self.store, transport=self.transport)

        self._provider_config = provider_config
        self._adapter = adapter
        self._agent: ConversationalAgent | None = None
        self._last_result_path = Path(last_result_path) if last_result_path else None
        self._load_last_result()

        self._handlers: dict[CommandType, Callable[[Command], CommandResponse]] = {
            CommandType.GET_STATUS: self._handle_get_status,
            CommandType.START_SEARCH: self._handle_start_search,
            CommandType.START_ANALYSIS: self._handle_start_analysis,
            CommandType.SEND_CHAT_MESSAGE: self._handle_send_chat_message,
            CommandType.GET_CHAT_HISTORY: self._handle_get_chat_history,
            CommandType.CLEAR_CHAT: self._handle_clear_chat,
            CommandType.GET_DEFAULT_PROMPT: self._handle_get_default_prompt,
            CommandType.EXPORT_MARKDOWN: self._handle_export_markdown,
        }

    # Properties ___________________________________________________________________________________________________________

    @property
    def agent(self) -> ConversationalAgent:
        """The conversational agent; the provider is resolved on first use."""
        if self._agent is None:
            if self._adapter is None:
                config = self._provider_config or ProviderConfig.from_env()
                self._adapter = AbstractProviderAdapter.from_config(config)
            self._agent = ConversationalAgent(
                session=self.session,
                orchestrator=self.orchestrator,
                adapter=self._adapter,
                notices=self.channels.notices,
            )
        return self._agent

    # Observation ______________________________________________________________________________________________________

    def observe(self, event: BodyObservedEvent | HeadersObservedEvent) -> None:
        """Publish an observed request event on its channel."""
        if isinstance(event, BodyObservedEvent):
            self.channels.body_observed.publish(event)
        else:
            self.channels.headers_observed.publish(event)

    def on_page_visited(self, url: str) -> None:
        """Update the page status from the URL the user is on."""
        apply_page_status(self.session, parse_page_status(url))

    # Operations ___________________________________________________________________________________________________________

    def get_status(self) -> StatusSnapshot:
        has_search_template = self.store.has(RequestKind.SEARCH_QUERY)
        has_detail_template = self.store.has(RequestKind.DETAIL_FETCH)

        if self.session.is_running:
            readiness = Readiness.RUNNING
        elif not self.session.session_identifier:
            readiness = Readiness.NO_SESSION
        elif not (has_search_template and has_detail_template):
            readiness = Readiness.MISSING_TEMPLATES
        elif self.session.is_on_nextdoor:
            readiness = Readiness.READY
        else:
            readiness = Readiness.IDLE

        last_result = self.session.last_result
        return StatusSnapshot(
            has_session_identifier=bool(self.session.session_identifier),
            session_identifier_captured_at=self.session.session_identifier_captured_at,
            is_on_nextdoor=self.session.is_on_nextdoor,
            is_on_search_page=self.session.is_on_search_page,
            current_query=self.session.current_query,
            last_query=self.session.last_query,
            is_running=self.session.is_running,
            progress=self.session.progress.model_copy(),
            last_result=last_result.summary() if last_result else None,
            session_search_count=self.session.session_search_count,
            is_analyzing=self.session.is_analyzing,
            has_search_template=has_search_template,
            has_detail_template=has_detail_template,
            readiness=readiness,
        )

    def start_search(self, query: str | None = None) -> SearchResult:
        """
        Run a replay search and make its result the current one.

        Args:
            query: Explicit query; resolved from the session and templates if omitted.

        Raises:
            DeepSearchError: On any failure of the run; an ERROR notice is published first.
        """
        try:
            resolved_query = self.orchestrator.resolve_query(query)
            result = self.orchestrator.run_search(resolved_query, progress_sink=self._publish_progress)
        except DeepSearchError as e:
            logger.error("Search failed: %s", e)
            self._notify(NoticeType.ERROR, message=str(e))
            raise

        self.session.last_result = result
        self.session.session_search_count += 1
        self.session.reset_conversation()
        self._save_last_result(result)
        self._notify(NoticeType.COMPLETE, **result.summary().model_dump(mode="json"))
        return result

    def start_analysis(self) -> str:
        return self._require_agent(NoticeType.ANALYSIS_ERROR).start_analysis()

    def send_chat_message(self, text: str) -> str:
        return self._require_agent(NoticeType.CHAT_ERROR).send_message(text)

    def get_chat_history(self) -> list[dict[str, str]]:
        return [turn.as_message() for turn in self.session.chat_history]

    def clear_chat(self) -> None:
        self.session.reset_conversation()

    def get_default_prompt(self) -> str:
        return DEFAULT_ANALYSIS_PROMPT

    def export_markdown(self) -> tuple[str, str]:
        """
        Render the current search result as a markdown report.

        Returns:
            The suggested file name and the markdown text.

        Raises:
            MissingSearchDataError: If no search has completed yet.
        """
        result = self.session.last_result
        if result is None:
            raise MissingSearchDataError("No search data available. Please run a Deep Search first.")
        return markdown_filename(result.query), format_markdown(result)

    ## Command dispatch

    def handle_command(self, command: Command) -> CommandResponse:
        """
        Execute a UI command.

        Failures are returned as ERROR responses carrying the user-facing message.
        """
        handler = self._handlers.get(command.type)
        if handler is None:
            return CommandResponse(type=ResponseType.ERROR, data={"message": f"Unknown command: {command.type}"})
        try:
            return handler(command)
        except DeepSearchError as e:
            return CommandResponse(type=ResponseType.ERROR, data={"message": str(e)})
        except Exception as e:
            logger.exception("Command %s failed unexpectedly", command.type)
            return CommandResponse(type=ResponseType.ERROR, data={"message": f"Unexpected error: {e}"})

    def _handle_get_status(self, command: Command) -> CommandResponse:
        return CommandResponse(type=ResponseType.STATUS, data=self.get_status())

    def _handle_start_search(self, command: Command) -> CommandResponse:
        result = self.start_search(command.data.get("query"))
        return CommandResponse(type=ResponseType.SEARCH_RESULT, data=result.summary())

    def _handle_start_analysis(self, command: Command) -> CommandResponse:
        return CommandResponse(type=ResponseType.ACKNOWLEDGED, data={"response": self.start_analysis()})

    def _handle_send_chat_message(self, command: Command) -> CommandResponse:
        message = command.data.get("message")
        if not isinstance(message, str) or not message.strip():
            return CommandResponse(type=ResponseType.ERROR, data={"message": "Message must not be empty"})
        return CommandResponse(type=ResponseType.ACKNOWLEDGED, data={"response": self.send_chat_message(message)})

    def _handle_get_chat_history(self, command: Command) -> CommandResponse:
        return CommandResponse(type=ResponseType.CHAT_HISTORY, data={"history": self.get_chat_history()})

    def _handle_clear_chat(self, command: Command) -> CommandResponse:
        self.clear_chat()
        return CommandResponse(type=ResponseType.ACKNOWLEDGED)

    def _handle_get_default_prompt(self, command: Command) -> CommandResponse:
        return CommandResponse(type=ResponseType.DEFAULT_PROMPT, data={"prompt": self.get_default_prompt()})

    def _handle_export_markdown(self, command: Command) -> CommandResponse:
        filename, markdown = self.export_markdown()
        return CommandResponse(type=ResponseType.MARKDOWN, data={"filename": filename, "markdown": markdown})

    # Private methods ______________________________________________________________________________________________________

    def _notify(self, notice_type: NoticeType, **data: object) -> None:
        self.channels.notices.publish(UINotice(type=notice_type, data=data))

    def _publish_progress(self, progress: SearchProgress) -> None:
        self._notify(NoticeType.PROGRESS, **progress.model_dump())

    def _require_agent(self, error_notice: NoticeType) -> ConversationalAgent:
        """The agent; a provider setup failure is published as `error_notice` before it propagates."""
        try:
            return self.agent
        except ProviderError as e:
            logger.error("Provider setup failed: %s", e)
            self._notify(error_notice, message=str(e))
            raise

    def _save_last_result(self, result: SearchResult) -> None:
        if self._last_result_path is None:
            return
        try:
            self._last_result_path.parent.mkdir(parents=True, exist_ok=True)
            self._last_result_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save last search result to %s: %s", self._last_result_path, e)
            return
        logger.debug("Saved last search result to %s", self._last_result_path)

    def _load_last_result(self) -> None:
        if self._last_result_path is None or not self._last_result_path.exists():
            return
        try:
            self.session.last_result = SearchResult.model_validate(
                json.loads(self._last_result_path.read_text(encoding="utf-8"))
            )
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Could not load last search result from %s: %s", self._last_result_path, e)
            return
        self.session.last_query = self.session.last_query or self.session.last_result.query
        logger.info("Loaded last search result for %r", self.session.last_result.query)
