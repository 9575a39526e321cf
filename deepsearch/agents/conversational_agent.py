"""
deepsearch/agents/conversational_agent.py

Conversational agent over the fetched search corpus.

Contains:
- ConversationalAgent: the initial analysis turn and follow-up chat turns
- A bounded tool loop letting the model trigger further searches
- A streaming fallback for backends without tool calling
"""

import time
from typing import Any

from deepsearch.agents.prompts import (
    ANALYSIS_REQUEST,
    MAX_ITERATIONS_MESSAGE,
    SEARCH_POSTS_TOOL,
    SEARCH_POSTS_TOOL_NAME,
    TOOL_ERROR_TEMPLATE,
    TOOL_RESULT_TEMPLATE,
    build_system_prompt,
)
from deepsearch.data_models.events import NoticeType, UINotice
from deepsearch.data_models.llms.interaction import ChatRole, CompletionKind, LLMToolCall, ToolResult
from deepsearch.data_models.threads import SearchResult, ToolSearchStatus
from deepsearch.llms.abstract_provider_adapter import AbstractProviderAdapter
from deepsearch.replay.formatting import format_threads_for_llm
from deepsearch.replay.orchestrator import ReplayOrchestrator
from deepsearch.session import SessionContext
from deepsearch.utils.event_channel import EventChannel
from deepsearch.utils.exceptions import MissingSearchDataError, ToolExecutionFailure
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


class ConversationalAgent:
    """
    Drives analysis and chat turns against one provider adapter.

    Every turn runs under the session's agent busy flag. Notices for the UI
    are published on the notices channel as the turn progresses.
    """

    MAX_TOOL_ITERATIONS: int = 3
    STREAM_SLICE_SIZE: int = 20
    STREAM_SLICE_DELAY_SECONDS: float = 0.01

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        session: SessionContext,
        orchestrator: ReplayOrchestrator,
        adapter: AbstractProviderAdapter,
        notices: EventChannel[UINotice],
        custom_prompt: str | None = None,
    ) -> None:
        """
        Initialize the agent.

        Args:
            session: The shared session context (holds history and accumulated searches).
            orchestrator: Runs the searches the model asks for.
            adapter: The LLM backend.
            notices: Channel receiving UI notices.
            custom_prompt: Replaces the default analysis prompt when set.
        """
        self._session = session
        self._orchestrator = orchestrator
        self._adapter = adapter
        self._notices = notices
        self._custom_prompt = custom_prompt if custom_prompt is not None else adapter.config.custom_prompt

    # Properties ___________________________________________________________________________________________________________

    @property
    def system_prompt(self) -> str:
        return build_system_prompt(self._custom_prompt)

    # Public methods _______________________________________________________________________________________________________

    def start_analysis(self) -> str:
        """
        Run the initial analysis of the last search result.

        Resets the conversation, streams the analysis, then records the
        analysis request and reply as the first two history turns.

        Returns:
            The full analysis text.

        Raises:
            MissingSearchDataError: If no search has completed yet.
            RunInProgressError: If another agent turn is active.
            ProviderError: If the backend fails.
        """
        with self._session.agent_run():
            try:
                result = self._require_search_data()
                self._session.reset_conversation()
                turns = [{
                    "role": ChatRole.USER.value,
                    "content": f"{self.system_prompt}\n\n{format_threads_for_llm(result.threads, result.query)}",
                }]
                self._notify(NoticeType.ANALYSIS_START)
                fragments: list[str] = []
                for chunk in self._adapter.stream_completion(turns):
                    fragments.append(chunk)
                    self._notify(NoticeType.ANALYSIS_CHUNK, chunk=chunk)
                full_response = "".join(fragments)
            except Exception as e:
                logger.error("Analysis failed: %s", e)
                self._notify(NoticeType.ANALYSIS_ERROR, message=str(e))
                raise

            self._session.append_turn(ChatRole.USER, ANALYSIS_REQUEST.format(query=result.query))
            self._session.append_turn(ChatRole.ASSISTANT, full_response)
            self._notify(NoticeType.ANALYSIS_COMPLETE, full_response=full_response)
            logger.info("Analysis complete (%d characters)", len(full_response))
            return full_response

    def send_message(self, text: str) -> str:
        """
        Answer a follow-up chat message.

        Args:
            text: The user's message.

        Returns:
            The assistant reply recorded in the history.

        Raises:
            MissingSearchDataError: If no search has completed yet.
            RunInProgressError: If another agent turn is active.
            ProviderError: If the backend fails.
        """
        with self._session.agent_run():
            try:
                self._require_search_data()
                self._session.append_turn(ChatRole.USER, text)
                turns = self._build_turns()
                self._notify(NoticeType.CHAT_START)
                if self._adapter.supports_tool_calling:
                    return self._run_tool_loop(turns)
                return self._run_streaming_fallback(turns)
            except Exception as e:
                logger.error("Chat turn failed: %s", e)
                self._notify(NoticeType.CHAT_ERROR, message=str(e))
                raise

    # Private methods ______________________________________________________________________________________________________

    def _notify(self, notice_type: NoticeType, **data: Any) -> None:
        self._notices.publish(UINotice(type=notice_type, data=data))

    def _require_search_data(self) -> SearchResult:
        if self._session.last_result is None:
            raise MissingSearchDataError("No search data available. Please run a Deep Search first.")
        return self._session.last_result

    def _build_corpus(self) -> str:
        primary = self._session.last_result
        corpus = format_threads_for_llm(primary.threads, primary.query)
        for search in self._session.accumulated_searches:
            corpus += f'\n\n=== ADDITIONAL SEARCH: "{search.query}" ===\n'
            corpus += format_threads_for_llm(search.threads, search.query)
        return corpus

    def _build_turns(self) -> list[dict[str, Any]]:
        """History as outbound messages, with the context prefixed to the first user turn."""
        context = f"{self.system_prompt}\n\n{self._build_corpus()}"
        turns: list[dict[str, Any]] = []
        context_added = False
        for turn in self._session.chat_history:
            if not context_added and turn.role == ChatRole.USER:
                turns.append({"role": turn.role.value, "content": f"{context}\n\nUser question: {turn.content}"})
                context_added = True
            else:
                turns.append(turn.as_message())
        return turns

    ## Tool loop

    def _run_tool_loop(self, turns: list[dict[str, Any]]) -> str:
        for iteration in range(1, self.MAX_TOOL_ITERATIONS + 1):
            logger.debug("Tool loop iteration %d", iteration)
            completion = self._adapter.completion_with_tools(turns, [SEARCH_POSTS_TOOL])

            # A tool-call reply without calls is answered like a text reply
            if completion.kind == CompletionKind.TEXT or not completion.tool_calls:
                content = completion.content or ""
                self._emit_sliced(content)
                self._session.append_turn(ChatRole.ASSISTANT, content)
                self._notify(NoticeType.CHAT_COMPLETE, full_response=content)
                return content

            results = [self._execute_tool_call(call) for call in completion.tool_calls]
            turns.extend(self._adapter.format_tool_result_messages(completion.tool_calls, results))

        logger.warning("Maximum of %d tool iterations reached", self.MAX_TOOL_ITERATIONS)
        self._notify(NoticeType.CHAT_CHUNK, chunk=MAX_ITERATIONS_MESSAGE)
        self._session.append_turn(ChatRole.ASSISTANT, MAX_ITERATIONS_MESSAGE)
        self._notify(NoticeType.CHAT_COMPLETE, full_response=MAX_ITERATIONS_MESSAGE)
        return MAX_ITERATIONS_MESSAGE

    def _emit_sliced(self, content: str) -> None:
        """Emit a complete reply as fixed-size chunks with a short pause between them."""
        for start in range(0, len(content), self.STREAM_SLICE_SIZE):
            self._notify(NoticeType.CHAT_CHUNK, chunk=content[start:start + self.STREAM_SLICE_SIZE])
            time.sleep(self.STREAM_SLICE_DELAY_SECONDS)

    def _execute_tool_call(self, call: LLMToolCall) -> ToolResult:
        """Run one tool call; failures become an error text for the model."""
        try:
            content = self._run_search_tool(call)
        except Exception as e:
            logger.exception("Tool %s failed: %s", call.tool_name, e)
            if call.tool_name == SEARCH_POSTS_TOOL_NAME:
                self._notify(NoticeType.TOOL_COMPLETE, result_count=0)
            content = TOOL_ERROR_TEMPLATE.format(message=str(e))
        return ToolResult(call_id=call.call_id, content=content)

    def _run_search_tool(self, call: LLMToolCall) -> str:
        """
        Raises:
            ToolExecutionFailure: If the tool is unknown or its arguments are invalid.
            DeepSearchError: If the search itself fails.
        """
        if call.tool_name != SEARCH_POSTS_TOOL_NAME:
            raise ToolExecutionFailure(f"Unknown tool: {call.tool_name}", tool_name=call.tool_name)
        query = call.tool_arguments.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolExecutionFailure("Missing or invalid 'query' argument", tool_name=call.tool_name)

        logger.info("Executing tool search: %r", query)
        self._notify(NoticeType.TOOL_EXECUTING, query=query, status="searching")

        def on_status(status: ToolSearchStatus) -> None:
            self._notify(NoticeType.TOOL_PROGRESS, **status.model_dump(mode="json", exclude_none=True))

        result = self._orchestrator.run_tool_search(query, status_sink=on_status)
        self._session.accumulated_searches.append(result)

        self._notify(NoticeType.TOOL_COMPLETE, result_count=result.thread_count)
        self._notify(NoticeType.LLM_THINKING, message="Analyzing results...")
        return TOOL_RESULT_TEMPLATE.format(query=query, corpus=format_threads_for_llm(result.threads, query))

    ## Streaming fallback

    def _run_streaming_fallback(self, turns: list[dict[str, Any]]) -> str:
        fragments: list[str] = []
        for chunk in self._adapter.stream_completion(turns):
            fragments.append(chunk)
            self._notify(NoticeType.CHAT_CHUNK, chunk=chunk)
        full_response = "".join(fragments)
        self._session.append_turn(ChatRole.ASSISTANT, full_response)
        self._notify(NoticeType.CHAT_COMPLETE, full_response=full_response)
        return full_response
