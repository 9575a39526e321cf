"""
deepsearch/llms/anthropic_adapter.py

Backend B: Anthropic provider adapter using the Messages API.
"""

import random
import time
from collections.abc import Generator
from typing import Any

from anthropic import Anthropic, APIConnectionError, APIError, APIStatusError, RateLimitError

from deepsearch.data_models.llms.interaction import CompletionResult, LLMToolCall, ToolDeclaration, ToolResult
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.llms.abstract_provider_adapter import AbstractProviderAdapter
from deepsearch.utils.exceptions import ProviderError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


# Retry configuration
MAX_RETRIES = 5
BASE_DELAY = 1.0  # seconds
MAX_DELAY = 60.0  # seconds
JITTER_FACTOR = 0.5  # Add randomness to avoid thundering herd

RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504, 529)


def _is_retryable_error(error: Exception) -> bool:
    """Check if an error is retryable (transient)."""
    if isinstance(error, RateLimitError):
        return True
    if isinstance(error, APIStatusError):
        body = getattr(error, "body", {})
        if isinstance(body, dict):
            error_info = body.get("error", {})
            if isinstance(error_info, dict) and error_info.get("type") in ("overloaded_error", "api_error"):
                return True
        return getattr(error, "status_code", 0) in RETRYABLE_STATUS_CODES
    return False


def _calculate_backoff(attempt: int) -> float:
    """Calculate backoff delay with exponential growth and jitter."""
    delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY)
    jitter = delay * JITTER_FACTOR * random.random()
    return delay + jitter


class AnthropicAdapter(AbstractProviderAdapter):
    """
    Anthropic adapter.

    Transient failures are retried with exponential backoff, but only before
    any text has been handed to the caller.
    """

    _vendor = LLMVendor.ANTHROPIC

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, config: ProviderConfig) -> None:
        super().__init__(config)
        self._client = Anthropic(api_key=config.api_key, timeout=config.request_timeout)
        # Credentials may also come from ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN
        if self._client.api_key is None and self._client.auth_token is None:
            raise ProviderError("No API key configured for anthropic. Set ANTHROPIC_API_KEY.", backend=self.backend)
        logger.debug("Initialized AnthropicAdapter with model: %s", config.model)

    # Private methods ______________________________________________________________________________________________________

    def _provider_error(self, error: APIError) -> ProviderError:
        if isinstance(error, APIStatusError):
            return ProviderError(f"Claude API error: {error.message}", backend=self.backend, status_code=error.status_code)
        if isinstance(error, APIConnectionError):
            return ProviderError(f"Claude connection error: {error}", backend=self.backend)
        return ProviderError(f"Claude API error: {error}", backend=self.backend)

    def _backoff_or_raise(self, error: APIError, attempt: int, streaming: bool) -> None:
        """Sleep before the next attempt, or raise if the error is final."""
        if not _is_retryable_error(error) or attempt == MAX_RETRIES - 1:
            raise self._provider_error(error) from error
        delay = _calculate_backoff(attempt)
        logger.warning(
            "Anthropic API error%s (attempt %d/%d), retrying in %.1fs: %s",
            " during streaming" if streaming else "", attempt + 1, MAX_RETRIES, delay, error,
        )
        time.sleep(delay)

    def _base_kwargs(self, turns: list[dict[str, Any]], max_tokens: int | None) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": turns,
            "max_tokens": self._resolve_max_tokens(max_tokens),
            "temperature": self.config.temperature,
        }

    ## Unified API methods

    def stream_completion(
        self,
        turns: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> Generator[str, None, None]:
        kwargs = self._base_kwargs(turns, max_tokens)

        for attempt in range(MAX_RETRIES):
            yielded_any = False
            try:
                with self._client.messages.stream(**kwargs) as stream:
                    for event in stream:
                        if event.type != "content_block_delta" or event.delta.type != "text_delta":
                            continue
                        if event.delta.text:
                            yielded_any = True
                            yield event.delta.text
                return
            except APIError as e:
                if yielded_any:
                    raise self._provider_error(e) from e
                self._backoff_or_raise(e, attempt, streaming=True)

    def completion_with_tools(
        self,
        turns: list[dict[str, Any]],
        tools: list[ToolDeclaration],
        max_tokens: int | None = None,
    ) -> CompletionResult:
        kwargs = self._base_kwargs(turns, max_tokens)
        kwargs["tools"] = [
            {"name": tool.name, "description": tool.description, "input_schema": tool.parameters}
            for tool in tools
        ]

        response = None
        for attempt in range(MAX_RETRIES):
            try:
                response = self._client.messages.create(**kwargs)
                break
            except APIError as e:
                self._backoff_or_raise(e, attempt, streaming=False)

        if response.stop_reason == "tool_use":
            return CompletionResult.tool_call([
                LLMToolCall(
                    call_id=block.id,
                    tool_name=block.name,
                    tool_arguments=block.input if isinstance(block.input, dict) else {},
                )
                for block in response.content
                if block.type == "tool_use"
            ])

        text_block = next((block for block in response.content if block.type == "text"), None)
        return CompletionResult.text(text_block.text if text_block is not None else "")

    def format_tool_result_messages(
        self,
        calls: list[LLMToolCall],
        results: list[ToolResult],
    ) -> list[dict[str, Any]]:
        return [
            {
                "role": "assistant",
                "content": [
                    {"type": "tool_use", "id": call.call_id, "name": call.tool_name, "input": call.tool_arguments}
                    for call in calls
                ],
            },
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": result.call_id, "content": result.content}
                    for result in results
                ],
            },
        ]
