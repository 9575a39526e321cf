"""
deepsearch/data_models/llms/interaction.py

Backend-neutral models for conversations, tool calls and completions.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ChatRole(StrEnum):
    """Roles kept in the chat history."""
    USER = "user"
    ASSISTANT = "assistant"


class Turn(BaseModel):
    """One chat history entry."""
    role: ChatRole
    content: str

    def as_message(self) -> dict[str, Any]:
        """Return the turn as a generic role/content message dict."""
        return {"role": self.role.value, "content": self.content}


class ToolDeclaration(BaseModel):
    """A tool the model may call, described by a JSON schema."""
    name: str
    description: str
    parameters: dict[str, Any] = Field(description="JSON schema of the tool arguments")


class LLMToolCall(BaseModel):
    """A tool invocation requested by the model."""
    call_id: str = Field(description="Backend-assigned id used to pair the result with the call")
    tool_name: str
    tool_arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """The textual answer to one tool call."""
    call_id: str
    content: str


class CompletionKind(StrEnum):
    """What a non-streaming tool-enabled completion produced."""
    TEXT = "text"
    TOOL_CALL = "tool_call"


class CompletionResult(BaseModel):
    """Result of completion_with_tools."""
    kind: CompletionKind
    content: str | None = None
    tool_calls: list[LLMToolCall] = Field(default_factory=list)

    @classmethod
    def text(cls, content: str) -> "CompletionResult":
        return cls(kind=CompletionKind.TEXT, content=content)

    @classmethod
    def tool_call(cls, tool_calls: list[LLMToolCall]) -> "CompletionResult":
        return cls(kind=CompletionKind.TOOL_CALL, tool_calls=tool_calls)
