"""
deepsearch/data_models/llms

Data models for LLM vendors, provider configuration and interactions.
"""

from deepsearch.data_models.llms.interaction import (
    ChatRole,
    CompletionKind,
    CompletionResult,
    LLMToolCall,
    ToolDeclaration,
    ToolResult,
    Turn,
)
from deepsearch.data_models.llms.vendors import LLMVendor, ProviderConfig

__all__ = [
    "ChatRole",
    "CompletionKind",
    "CompletionResult",
    "LLMToolCall",
    "LLMVendor",
    "ProviderConfig",
    "ToolDeclaration",
    "ToolResult",
    "Turn",
]
