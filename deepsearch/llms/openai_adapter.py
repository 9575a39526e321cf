"""
deepsearch/llms/openai_adapter.py

Backend A: OpenAI-compatible provider adapter using the Chat Completions API.
"""

import json
from collections.abc import Generator
from typing import Any

from openai import APIConnectionError, APIStatusError, OpenAI, OpenAIError

from deepsearch.data_models.llms.interaction import CompletionResult, LLMToolCall, ToolDeclaration, ToolResult
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.llms.abstract_provider_adapter import AbstractProviderAdapter
from deepsearch.utils.exceptions import ProviderError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


# Models that take max_completion_tokens instead of max_tokens
NEW_TOKEN_PARAM_PREFIXES: tuple[str, ...] = ("gpt-4.1", "gpt-5", "o1", "o3", "o4")


def _tool_to_openai_format(tool: ToolDeclaration) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


class OpenAIAdapter(AbstractProviderAdapter):
    """
    OpenAI-compatible adapter.

    `base_url` may point at any server speaking the Chat Completions protocol.
    """

    _vendor = LLMVendor.OPENAI

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, config: ProviderConfig) -> None:
        super().__init__(config)
        try:
            self._client = OpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.request_timeout,
            )
        except OpenAIError as e:
            raise ProviderError(f"OpenAI client setup failed: {e}", backend=self.backend) from e
        logger.debug("Initialized OpenAIAdapter with model: %s", config.model)

    # Private methods ______________________________________________________________________________________________________

    def _token_param(self, max_tokens: int | None) -> dict[str, int]:
        resolved = self._resolve_max_tokens(max_tokens)
        if self.config.model.startswith(NEW_TOKEN_PARAM_PREFIXES):
            return {"max_completion_tokens": resolved}
        return {"max_tokens": resolved}

    def _provider_error(self, error: OpenAIError) -> ProviderError:
        if isinstance(error, APIStatusError):
            return ProviderError(f"OpenAI API error: {error.message}", backend=self.backend, status_code=error.status_code)
        if isinstance(error, APIConnectionError):
            return ProviderError(f"OpenAI connection error: {error}", backend=self.backend)
        return ProviderError(f"OpenAI error: {error}", backend=self.backend)

    @staticmethod
    def _parse_arguments(raw: Any, tool_name: str) -> dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        try:
            parsed = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            logger.warning("Unparseable arguments for tool %s: %s", tool_name, str(raw)[:200])
            return {}
        return parsed if isinstance(parsed, dict) else {}

    ## Unified API methods

    def stream_completion(
        self,
        turns: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> Generator[str, None, None]:
        try:
            stream = self._client.chat.completions.create(
                model=self.config.model,
                messages=turns,
                temperature=self.config.temperature,
                stream=True,
                **self._token_param(max_tokens),
            )
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except OpenAIError as e:
            raise self._provider_error(e) from e

    def completion_with_tools(
        self,
        turns: list[dict[str, Any]],
        tools: list[ToolDeclaration],
        max_tokens: int | None = None,
    ) -> CompletionResult:
        try:
            response = self._client.chat.completions.create(
                model=self.config.model,
                messages=turns,
                tools=[_tool_to_openai_format(tool) for tool in tools],
                tool_choice="auto",
                temperature=self.config.temperature,
                **self._token_param(max_tokens),
            )
        except OpenAIError as e:
            raise self._provider_error(e) from e

        if not response.choices:
            raise ProviderError("Invalid response format from OpenAI", backend=self.backend)
        message = response.choices[0].message

        if message.tool_calls:
            return CompletionResult.tool_call([
                LLMToolCall(
                    call_id=tool_call.id,
                    tool_name=tool_call.function.name,
                    tool_arguments=self._parse_arguments(tool_call.function.arguments, tool_call.function.name),
                )
                for tool_call in message.tool_calls
            ])
        return CompletionResult.text(message.content or "")

    def format_tool_result_messages(
        self,
        calls: list[LLMToolCall],
        results: list[ToolResult],
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {
                        "name": call.tool_name,
                        "arguments": json.dumps(call.tool_arguments),
                    },
                }
                for call in calls
            ],
        }]
        for result in results:
            messages.append({
                "role": "tool",
                "tool_call_id": result.call_id,
                "content": result.content,
            })
        return messages
