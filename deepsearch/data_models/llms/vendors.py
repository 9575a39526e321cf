"""
deepsearch/data_models/llms/vendors.py

This module contains the LLM vendor models and the provider configuration.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from deepsearch.config import Config
from deepsearch.utils.exceptions import ProviderError


class LLMVendor(StrEnum):
    """
    Represents the backend serving an LLM.
    """
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"


class VendorModel(StrEnum):
    """Base for known-model enums. Subclasses must define _vendor."""
    _vendor: ClassVar[LLMVendor]

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, '_vendor'):
            raise TypeError(f"{cls.__name__} must define _vendor class attribute")

    @property
    def vendor(self) -> LLMVendor:
        return self.__class__._vendor


class OpenAIModel(VendorModel):
    """OpenAI models."""
    _vendor = LLMVendor.OPENAI

    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4_1 = "gpt-4.1"
    GPT_4_1_MINI = "gpt-4.1-mini"
    GPT_5 = "gpt-5"
    GPT_5_MINI = "gpt-5-mini"


class AnthropicModel(VendorModel):
    """Anthropic models."""
    _vendor = LLMVendor.ANTHROPIC

    CLAUDE_HAIKU_4_5 = "claude-haiku-4-5-20251001"
    CLAUDE_SONNET_4_5 = "claude-sonnet-4-5"
    CLAUDE_OPUS_4_5 = "claude-opus-4-5"


class OllamaModel(VendorModel):
    """Commonly used Ollama models. Any locally pulled model name is accepted."""
    _vendor = LLMVendor.OLLAMA

    LLAMA_3_1 = "llama3.1"
    QWEN_2_5 = "qwen2.5"


DEFAULT_MODELS: dict[LLMVendor, str] = {
    LLMVendor.OPENAI: OpenAIModel.GPT_4O_MINI.value,
    LLMVendor.ANTHROPIC: AnthropicModel.CLAUDE_HAIKU_4_5.value,
    LLMVendor.OLLAMA: OllamaModel.LLAMA_3_1.value,
}


def get_model_vendor(model_value: str) -> LLMVendor | None:
    """
    Get the vendor of a known model value.

    Args:
        model_value: The model value string (e.g., "gpt-4.1", "claude-sonnet-4-5").

    Returns:
        The LLMVendor if the model is known, None otherwise.
    """
    for model_cls in VendorModel.__subclasses__():
        try:
            return model_cls(model_value).vendor
        except ValueError:
            continue
    return None


def get_all_model_values() -> list[str]:
    """Get all known model value strings."""
    return [m.value for cls in VendorModel.__subclasses__() for m in cls]


class ProviderConfig(BaseModel):
    """
    Backend selection, credentials, model and generation parameters.
    Immutable for the duration of one agent run.
    """
    model_config = ConfigDict(frozen=True)

    vendor: LLMVendor
    model: str
    api_key: str | None = Field(default=None, repr=False)
    base_url: str | None = None
    max_tokens: int = 4_096
    temperature: float = 0.0
    tool_calling: bool = Field(default=True, description="Allow structured tool calls when the backend supports them")
    request_timeout: float = 120.0
    custom_prompt: str | None = Field(default=None, description="User guidance replacing the default analysis prompt")

    @classmethod
    def from_env(
        cls,
        vendor: str | None = None,
        model: str | None = None,
    ) -> "ProviderConfig":
        """
        Build the provider configuration from Config, with optional overrides.

        Args:
            vendor: Vendor override ("openai", "anthropic", "ollama").
            model: Model override.

        Returns:
            The provider configuration.

        Raises:
            ProviderError: If no vendor is configured, the vendor is unknown or its API key is missing.
        """
        vendor_value = vendor or Config.DEEPSEARCH_PROVIDER
        if not vendor_value and model:
            known_vendor = get_model_vendor(model)
            vendor_value = known_vendor.value if known_vendor else None
        if not vendor_value:
            raise ProviderError("No LLM provider configured", backend="none")
        try:
            resolved_vendor = LLMVendor(vendor_value.lower())
        except ValueError:
            raise ProviderError(f"Unknown provider: {vendor_value}", backend=vendor_value)

        api_key: str | None = None
        base_url: str | None = None
        if resolved_vendor == LLMVendor.OPENAI:
            api_key, base_url = Config.OPENAI_API_KEY, Config.OPENAI_BASE_URL
        elif resolved_vendor == LLMVendor.ANTHROPIC:
            api_key = Config.ANTHROPIC_API_KEY
        else:
            base_url = Config.OLLAMA_URL

        if resolved_vendor != LLMVendor.OLLAMA and not api_key:
            raise ProviderError(
                f"No API key configured for {resolved_vendor.value}. Set {resolved_vendor.value.upper()}_API_KEY.",
                backend=resolved_vendor.value,
            )

        return cls(
            vendor=resolved_vendor,
            model=model or Config.DEEPSEARCH_MODEL or DEFAULT_MODELS[resolved_vendor],
            api_key=api_key,
            base_url=base_url,
            tool_calling=Config.DEEPSEARCH_TOOL_CALLING,
            request_timeout=Config.LLM_REQUEST_TIMEOUT,
            custom_prompt=Config.DEEPSEARCH_CUSTOM_PROMPT,
        )
