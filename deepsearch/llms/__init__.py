"""
deepsearch/llms

Provider adapters for the supported LLM backends.
"""

from deepsearch.llms.abstract_provider_adapter import AbstractProviderAdapter
from deepsearch.llms.anthropic_adapter import AnthropicAdapter
from deepsearch.llms.ollama_adapter import OllamaAdapter
from deepsearch.llms.openai_adapter import OpenAIAdapter

__all__ = [
    "AbstractProviderAdapter",
    "AnthropicAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
]
