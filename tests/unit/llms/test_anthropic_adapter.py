"""
tests/unit/llms/test_anthropic_adapter.py

Unit tests for AnthropicAdapter, including retry behavior with exponential backoff.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from anthropic import APIStatusError, RateLimitError

from deepsearch.data_models.llms.interaction import CompletionKind, LLMToolCall, ToolDeclaration, ToolResult
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.llms.anthropic_adapter import (
    BASE_DELAY,
    MAX_DELAY,
    MAX_RETRIES,
    AnthropicAdapter,
    _calculate_backoff,
    _is_retryable_error,
)
from deepsearch.utils.exceptions import ProviderError


SEARCH_TOOL = ToolDeclaration(
    name="searchPosts",
    description="Search posts",
    parameters={"type": "object", "properties": {"query": {"type": "string"}}, "required": ["query"]},
)


def make_status_error(status_code: int, error_type: str, message: str = "Error") -> APIStatusError:
    return APIStatusError(
        message=message,
        response=MagicMock(status_code=status_code),
        body={"error": {"type": error_type, "message": message}},
    )


# --- Helper function tests ---


class TestIsRetryableError:
    """Tests for _is_retryable_error helper function."""

    def test_rate_limit_error_is_retryable(self) -> None:
        """RateLimitError should be retryable."""
        class MockRateLimitError(RateLimitError):
            def __init__(self) -> None:
                pass

        assert _is_retryable_error(MockRateLimitError()) is True

    def test_overloaded_error_is_retryable(self) -> None:
        """APIStatusError with overloaded_error type should be retryable."""
        assert _is_retryable_error(make_status_error(529, "overloaded_error")) is True

    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504, 529])
    def test_transient_status_is_retryable(self, status_code: int) -> None:
        """Transient HTTP statuses should be retryable."""
        assert _is_retryable_error(make_status_error(status_code, "other_error")) is True

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    def test_client_error_is_not_retryable(self, status_code: int) -> None:
        """Client errors should NOT be retryable."""
        assert _is_retryable_error(make_status_error(status_code, "invalid_request_error")) is False

    def test_generic_exception_is_not_retryable(self) -> None:
        """Non-API exceptions should NOT be retryable."""
        assert _is_retryable_error(ValueError("boom")) is False


class TestCalculateBackoff:
    """Tests for _calculate_backoff helper function."""

    def test_first_attempt(self) -> None:
        """First attempt delay is BASE_DELAY plus up to 50% jitter."""
        delay = _calculate_backoff(0)
        assert BASE_DELAY <= delay <= BASE_DELAY * 1.5

    def test_max_delay_cap(self) -> None:
        """Delay should be capped at MAX_DELAY (plus jitter)."""
        assert _calculate_backoff(100) <= MAX_DELAY * 1.5


# --- Adapter tests ---


@pytest.fixture
def mock_anthropic(mock_llm_sdk_clients: dict[str, MagicMock]) -> MagicMock:
    """The mocked Anthropic client instance the adapter talks to."""
    return mock_llm_sdk_clients["anthropic"].return_value


@pytest.fixture
def adapter(mock_anthropic: MagicMock) -> AnthropicAdapter:
    config = ProviderConfig(vendor=LLMVendor.ANTHROPIC, model="claude-sonnet-4-5", api_key="test-key", max_tokens=512)
    return AnthropicAdapter(config=config)


def make_stream_events(*texts: str) -> list[MagicMock]:
    events = []
    start = MagicMock()
    start.type = "message_start"
    events.append(start)
    for text in texts:
        event = MagicMock()
        event.type = "content_block_delta"
        event.delta = MagicMock()
        event.delta.type = "text_delta"
        event.delta.text = text
        events.append(event)
    return events


def make_text_block(text: str) -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    return block


def make_tool_use_block(call_id: str, name: str, arguments: dict[str, Any]) -> MagicMock:
    block = MagicMock()
    block.type = "tool_use"
    block.id = call_id
    block.name = name
    block.input = arguments
    return block


def make_response(stop_reason: str, content: list[MagicMock]) -> MagicMock:
    response = MagicMock()
    response.stop_reason = stop_reason
    response.content = content
    return response


class TestInit:
    """Tests for client construction."""

    def test_missing_credentials(self, mock_anthropic: MagicMock) -> None:
        mock_anthropic.api_key = None
        mock_anthropic.auth_token = None
        with pytest.raises(ProviderError, match="ANTHROPIC_API_KEY"):
            AnthropicAdapter(config=ProviderConfig(vendor=LLMVendor.ANTHROPIC, model="claude-sonnet-4-5"))

    def test_credentials_from_environment(self, mock_anthropic: MagicMock) -> None:
        mock_anthropic.api_key = "sk-from-env"
        adapter = AnthropicAdapter(config=ProviderConfig(vendor=LLMVendor.ANTHROPIC, model="claude-sonnet-4-5"))
        assert adapter.backend == "anthropic"


class TestStreamCompletion:
    """Tests for streaming completions."""

    def test_yields_text_deltas(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """Text deltas are yielded in order; other events are skipped."""
        events = make_stream_events("Hel", "lo")
        captured: dict[str, Any] = {}

        @contextmanager
        def mock_stream_context(**kwargs: Any) -> Generator[MagicMock, None, None]:
            captured.update(kwargs)
            mock_stream = MagicMock()
            mock_stream.__iter__ = lambda self: iter(events)
            yield mock_stream

        mock_anthropic.messages.stream = mock_stream_context

        chunks = list(adapter.stream_completion([{"role": "user", "content": "Hi"}]))

        assert chunks == ["Hel", "lo"]
        assert captured["model"] == "claude-sonnet-4-5"
        assert captured["max_tokens"] == 512
        assert captured["messages"] == [{"role": "user", "content": "Hi"}]

    def test_retries_before_first_chunk(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """Streaming should retry transient errors raised before any text."""
        overloaded_error = make_status_error(529, "overloaded_error", "Overloaded")
        call_count = 0
        events = make_stream_events("Success!")

        @contextmanager
        def mock_stream_context(**kwargs: Any) -> Generator[MagicMock, None, None]:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise overloaded_error
            mock_stream = MagicMock()
            mock_stream.__iter__ = lambda self: iter(events)
            yield mock_stream

        mock_anthropic.messages.stream = mock_stream_context

        with patch("deepsearch.llms.anthropic_adapter.time.sleep") as mock_sleep:
            chunks = list(adapter.stream_completion([{"role": "user", "content": "Hi"}]))

        assert call_count == 3
        assert mock_sleep.call_count == 2
        assert chunks == ["Success!"]

    def test_no_retry_after_first_chunk(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """A failure after text was yielded surfaces instead of restarting the stream."""
        overloaded_error = make_status_error(529, "overloaded_error", "Overloaded")
        call_count = 0

        def failing_events() -> Generator[MagicMock, None, None]:
            yield from make_stream_events("partial")
            raise overloaded_error

        @contextmanager
        def mock_stream_context(**kwargs: Any) -> Generator[MagicMock, None, None]:
            nonlocal call_count
            call_count += 1
            mock_stream = MagicMock()
            mock_stream.__iter__ = lambda self: failing_events()
            yield mock_stream

        mock_anthropic.messages.stream = mock_stream_context

        chunks: list[str] = []
        with patch("deepsearch.llms.anthropic_adapter.time.sleep") as mock_sleep:
            with pytest.raises(ProviderError, match="Claude API error"):
                for chunk in adapter.stream_completion([{"role": "user", "content": "Hi"}]):
                    chunks.append(chunk)

        assert chunks == ["partial"]
        assert call_count == 1
        mock_sleep.assert_not_called()

    def test_max_retries_exceeded(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """Streaming should raise after max retries."""
        overloaded_error = make_status_error(529, "overloaded_error", "Overloaded")
        call_count = 0

        @contextmanager
        def mock_stream_context(**kwargs: Any) -> Generator[MagicMock, None, None]:
            nonlocal call_count
            call_count += 1
            raise overloaded_error
            yield  # type: ignore[misc]  # Never reached

        mock_anthropic.messages.stream = mock_stream_context

        with patch("deepsearch.llms.anthropic_adapter.time.sleep"):
            with pytest.raises(ProviderError) as exc_info:
                list(adapter.stream_completion([{"role": "user", "content": "Hi"}]))

        assert call_count == MAX_RETRIES
        assert exc_info.value.status_code == 529
        assert exc_info.value.backend == "anthropic"


class TestCompletionWithTools:
    """Tests for non-streaming completions with tools."""

    def test_text_reply(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        mock_anthropic.messages.create.return_value = make_response("end_turn", [make_text_block("Answer")])

        result = adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])

        assert result.kind == CompletionKind.TEXT
        assert result.content == "Answer"
        tools = mock_anthropic.messages.create.call_args.kwargs["tools"]
        assert tools == [{
            "name": "searchPosts",
            "description": "Search posts",
            "input_schema": SEARCH_TOOL.parameters,
        }]

    def test_reply_without_text_block(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        mock_anthropic.messages.create.return_value = make_response("end_turn", [])
        result = adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])
        assert result.content == ""

    def test_tool_use(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """Tool-use blocks become tool calls; interleaved text blocks are ignored."""
        mock_anthropic.messages.create.return_value = make_response("tool_use", [
            make_text_block("Let me search."),
            make_tool_use_block("toolu_1", "searchPosts", {"query": "electrician"}),
        ])

        result = adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])

        assert result.kind == CompletionKind.TOOL_CALL
        assert result.tool_calls == [
            LLMToolCall(call_id="toolu_1", tool_name="searchPosts", tool_arguments={"query": "electrician"}),
        ]

    def test_retries_on_overloaded_error(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        """Should retry on overloaded error with growing delays."""
        overloaded_error = make_status_error(529, "overloaded_error", "Overloaded")
        mock_anthropic.messages.create.side_effect = [
            overloaded_error,
            overloaded_error,
            make_response("end_turn", [make_text_block("Success after retries")]),
        ]

        sleep_calls: list[float] = []
        with patch("deepsearch.llms.anthropic_adapter.time.sleep", side_effect=lambda x: sleep_calls.append(x)):
            result = adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])

        assert result.content == "Success after retries"
        assert mock_anthropic.messages.create.call_count == 3
        assert len(sleep_calls) == 2
        assert sleep_calls[1] > sleep_calls[0]

    def test_no_retry_on_non_retryable_error(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        mock_anthropic.messages.create.side_effect = make_status_error(400, "invalid_request_error", "Bad request")

        with patch("deepsearch.llms.anthropic_adapter.time.sleep") as mock_sleep:
            with pytest.raises(ProviderError, match="Claude API error: Bad request") as exc_info:
                adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])

        assert mock_anthropic.messages.create.call_count == 1
        assert exc_info.value.status_code == 400
        mock_sleep.assert_not_called()

    def test_max_retries_exceeded(self, adapter: AnthropicAdapter, mock_anthropic: MagicMock) -> None:
        mock_anthropic.messages.create.side_effect = make_status_error(529, "overloaded_error", "Overloaded")

        with patch("deepsearch.llms.anthropic_adapter.time.sleep"):
            with pytest.raises(ProviderError):
                adapter.completion_with_tools([{"role": "user", "content": "Hi"}], [SEARCH_TOOL])

        assert mock_anthropic.messages.create.call_count == MAX_RETRIES


class TestFormatToolResultMessages:
    """Tests for the Anthropic tool-result encoding."""

    def test_one_round(self, adapter: AnthropicAdapter) -> None:
        """One assistant turn with all tool_use blocks, then one user turn with all results."""
        calls = [
            LLMToolCall(call_id="toolu_1", tool_name="searchPosts", tool_arguments={"query": "a"}),
            LLMToolCall(call_id="toolu_2", tool_name="searchPosts", tool_arguments={"query": "b"}),
        ]
        results = [ToolResult(call_id="toolu_1", content="one"), ToolResult(call_id="toolu_2", content="two")]

        messages = adapter.format_tool_result_messages(calls, results)

        assert messages == [
            {
                "role": "assistant",
                "content": [
                    {"type": "tool_use", "id": "toolu_1", "name": "searchPosts", "input": {"query": "a"}},
                    {"type": "tool_use", "id": "toolu_2", "name": "searchPosts", "input": {"query": "b"}},
                ],
            },
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": "toolu_1", "content": "one"},
                    {"type": "tool_result", "tool_use_id": "toolu_2", "content": "two"},
                ],
            },
        ]
