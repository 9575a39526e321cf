"""
deepsearch/llms/ollama_adapter.py

Backend C: local Ollama provider adapter speaking the /api/chat NDJSON protocol.
"""

import json
from collections.abc import Generator
from typing import Any

import requests

from deepsearch.data_models.llms.interaction import CompletionResult, LLMToolCall, ToolDeclaration, ToolResult
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.llms.abstract_provider_adapter import AbstractProviderAdapter
from deepsearch.utils.exceptions import ProviderError
from deepsearch.utils.logger import get_logger

logger = get_logger(name=__name__)


DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaAdapter(AbstractProviderAdapter):
    """
    Ollama adapter.

    Tool calls follow the OpenAI shape, but arguments travel as objects.
    """

    _vendor = LLMVendor.OLLAMA

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, config: ProviderConfig, http_session: requests.Session | None = None) -> None:
        super().__init__(config)
        self.url = (config.base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self._http = http_session or requests.Session()
        logger.debug("Initialized OllamaAdapter with model: %s at %s", config.model, self.url)

    # Private methods ______________________________________________________________________________________________________

    def _body(self, turns: list[dict[str, Any]], max_tokens: int | None, stream: bool) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": turns,
            "stream": stream,
            "options": {
                "num_predict": self._resolve_max_tokens(max_tokens),
                "temperature": self.config.temperature,
            },
        }

    def _raise_for_status(self, response: requests.Response) -> None:
        if not response.ok:
            raise ProviderError(
                f"Ollama API error: {response.text}",
                backend=self.backend,
                status_code=response.status_code,
            )

    ## Unified API methods

    def stream_completion(
        self,
        turns: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> Generator[str, None, None]:
        try:
            with self._http.post(
                f"{self.url}/api/chat",
                json=self._body(turns, max_tokens, stream=True),
                stream=True,
                timeout=self.config.request_timeout,
            ) as response:
                self._raise_for_status(response)
                for line in response.iter_lines(decode_unicode=True):
                    if not line or not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError:
                        logger.warning("Malformed NDJSON line from Ollama: %s", line[:200])
                        continue
                    if not isinstance(data, dict):
                        logger.warning("Unexpected NDJSON value from Ollama: %s", line[:200])
                        continue
                    if data.get("error"):
                        raise ProviderError(f"Ollama API error: {data['error']}", backend=self.backend)
                    message = data.get("message")
                    content = message.get("content") if isinstance(message, dict) else None
                    if content:
                        yield content
                    if data.get("done"):
                        return
        except requests.RequestException as e:
            raise ProviderError(f"Ollama request failed: {e}", backend=self.backend) from e

    def completion_with_tools(
        self,
        turns: list[dict[str, Any]],
        tools: list[ToolDeclaration],
        max_tokens: int | None = None,
    ) -> CompletionResult:
        body = self._body(turns, max_tokens, stream=False)
        body["tools"] = [
            {
                "type": "function",
                "function": {"name": tool.name, "description": tool.description, "parameters": tool.parameters},
            }
            for tool in tools
        ]
        try:
            response = self._http.post(f"{self.url}/api/chat", json=body, timeout=self.config.request_timeout)
        except requests.RequestException as e:
            raise ProviderError(f"Ollama request failed: {e}", backend=self.backend) from e
        self._raise_for_status(response)

        try:
            message = response.json().get("message")
        except (ValueError, AttributeError):
            message = None
        if not isinstance(message, dict):
            raise ProviderError("Invalid response format from Ollama", backend=self.backend)

        raw_calls = message.get("tool_calls") or []
        calls: list[LLMToolCall] = []
        for index, raw_call in enumerate(raw_calls if isinstance(raw_calls, list) else []):
            function = raw_call.get("function") if isinstance(raw_call, dict) else None
            if not isinstance(function, dict):
                logger.warning("Skipping malformed tool call from Ollama: %s", str(raw_call)[:200])
                continue
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    logger.warning("Unparseable arguments for tool %s", function.get("name"))
                    arguments = {}
            calls.append(LLMToolCall(
                call_id=raw_call.get("id") or f"call_{index}",
                tool_name=function.get("name", ""),
                tool_arguments=arguments if isinstance(arguments, dict) else {},
            ))
        if calls:
            return CompletionResult.tool_call(calls)

        return CompletionResult.text(message.get("content") or "")

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
                    "function": {"name": call.tool_name, "arguments": call.tool_arguments},
                }
                for call in calls
            ],
        }]
        for result in results:
            messages.append({"role": "tool", "tool_call_id": result.call_id, "content": result.content})
        return messages
