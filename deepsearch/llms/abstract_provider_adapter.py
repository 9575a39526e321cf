"""
deepsearch/llms/abstract_provider_adapter.py

Abstract base class for LLM provider adapters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Generator
from typing import Any, ClassVar

from deepsearch.data_models.llms.interaction import CompletionResult, LLMToolCall, ToolDeclaration, ToolResult
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.utils.exceptions import ProviderError


class AbstractProviderAdapter(ABC):
    """
    Abstract base class defining the interface the conversational agent talks to.

    Each backend implements streaming completion, a non-streaming completion
    with tool declarations, and its own encoding of tool results.
    """

    # Class attributes ____________________________________________________________________________________________________

    _vendor: ClassVar[LLMVendor]
    # Capability descriptor; the agent checks it before choosing the tool loop
    TOOL_CALLING_SUPPORTED: ClassVar[bool] = True

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, '_vendor'):
            raise TypeError(f"{cls.__name__} must define _vendor class attribute")

    @classmethod
    def from_config(cls, config: ProviderConfig) -> AbstractProviderAdapter:
        """Create the adapter for the configured backend."""
        for subclass in cls.__subclasses__():
            if subclass._vendor == config.vendor:
                return subclass(config=config)
        raise ProviderError(f"No adapter found for vendor: {config.vendor}", backend=str(config.vendor))

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, config: ProviderConfig) -> None:
        """
        Initialize the adapter.

        Args:
            config: Backend selection, credentials, model and generation parameters.
        """
        self.config = config

    # Properties ___________________________________________________________________________________________________________

    @property
    def backend(self) -> str:
        return self._vendor.value

    @property
    def supports_tool_calling(self) -> bool:
        """Whether the agent may use completion_with_tools with this adapter."""
        return self.TOOL_CALLING_SUPPORTED and self.config.tool_calling

    # Protected methods ____________________________________________________________________________________________________

    def _resolve_max_tokens(self, max_tokens: int | None) -> int:
        """Resolve max_tokens, using the configured value if None."""
        return max_tokens if max_tokens is not None else self.config.max_tokens

    # Unified API methods __________________________________________________________________________________________________

    @abstractmethod
    def stream_completion(
        self,
        turns: list[dict[str, Any]],
        max_tokens: int | None = None,
    ) -> Generator[str, None, None]:
        """
        Stream a completion.

        Args:
            turns: Messages with 'role' and 'content' keys.
            max_tokens: Maximum tokens in the response.

        Yields:
            Non-empty text fragments in arrival order.

        Raises:
            ProviderError: If the backend rejects the request.
        """
        pass

    @abstractmethod
    def completion_with_tools(
        self,
        turns: list[dict[str, Any]],
        tools: list[ToolDeclaration],
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """
        Non-streaming completion with tool declarations.

        Args:
            turns: Messages, including backend-specific tool result messages.
            tools: Tools the model may call.
            max_tokens: Maximum tokens in the response.

        Returns:
            Either the text reply or the tool calls the model requested.

        Raises:
            ProviderError: If the backend rejects the request or answers malformed.
        """
        pass

    @abstractmethod
    def format_tool_result_messages(
        self,
        calls: list[LLMToolCall],
        results: list[ToolResult],
    ) -> list[dict[str, Any]]:
        """
        Encode one round of tool calls and their results as messages for this backend.

        Args:
            calls: The tool calls of the round, in the order the model returned them.
            results: One result per call.

        Returns:
            Messages to append to the outbound turns.
        """
        pass
