"""
deepsearch/replay

Replay of captured templates and flattening of the fetched threads.
"""

from deepsearch.replay.comment_extractor import CommentTreeExtractor
from deepsearch.replay.orchestrator import ReplayOrchestrator
from deepsearch.replay.transport import ReplayTransport

__all__ = [
    "CommentTreeExtractor",
    "ReplayOrchestrator",
    "ReplayTransport",
]
