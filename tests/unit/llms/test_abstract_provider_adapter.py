"""
tests/unit/llms/test_abstract_provider_adapter.py

Unit tests for the provider adapter base class and factory.
"""

import pytest

from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig
from deepsearch.llms import AbstractProviderAdapter, AnthropicAdapter, OllamaAdapter, OpenAIAdapter


class TestFromConfig:
    """Tests for selecting the adapter of a configured backend."""

    @pytest.mark.parametrize("vendor, model, adapter_cls", [
        (LLMVendor.OPENAI, "gpt-4o-mini", OpenAIAdapter),
        (LLMVendor.ANTHROPIC, "claude-sonnet-4-5", AnthropicAdapter),
        (LLMVendor.OLLAMA, "llama3.1", OllamaAdapter),
    ])
    def test_vendor_selects_adapter(self, vendor: LLMVendor, model: str, adapter_cls: type) -> None:
        adapter = AbstractProviderAdapter.from_config(ProviderConfig(vendor=vendor, model=model))
        assert isinstance(adapter, adapter_cls)
        assert adapter.backend == vendor.value


class TestCapabilities:
    """Tests for the tool-calling capability descriptor."""

    def test_tool_calling_enabled(self) -> None:
        adapter = AbstractProviderAdapter.from_config(ProviderConfig(vendor=LLMVendor.OLLAMA, model="llama3.1"))
        assert adapter.supports_tool_calling

    def test_tool_calling_disabled_by_config(self) -> None:
        adapter = AbstractProviderAdapter.from_config(
            ProviderConfig(vendor=LLMVendor.OLLAMA, model="llama3.1", tool_calling=False)
        )
        assert not adapter.supports_tool_calling

    def test_max_tokens_resolution(self) -> None:
        adapter = AbstractProviderAdapter.from_config(
            ProviderConfig(vendor=LLMVendor.OLLAMA, model="llama3.1", max_tokens=256)
        )
        assert adapter._resolve_max_tokens(None) == 256
        assert adapter._resolve_max_tokens(32) == 32


class TestSubclassing:
    """Tests for the _vendor requirement."""

    def test_subclass_without_vendor_rejected(self) -> None:
        with pytest.raises(TypeError, match="must define _vendor"):
            class NoVendorAdapter(AbstractProviderAdapter):  # noqa: F841
                pass
