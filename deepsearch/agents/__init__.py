"""
deepsearch/agents

The conversational agent and its prompts.
"""

from deepsearch.agents.conversational_agent import ConversationalAgent

__all__ = [
    "ConversationalAgent",
]
