"""
deepsearch/config.py

Environment variable configuration.

Contains:
- Config: Centralized settings from environment variables
- LLM credentials, replay pacing, capture TTL, persistence paths, etc.
"""

import logging
import os
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# configure httpx (used by the openai/anthropic SDKs) and urllib3 loggers to suppress verbose HTTP logs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)


def _env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


_WORKSPACE_DIR: str = os.getenv("DEEPSEARCH_WORKSPACE_DIR", "./deepsearch_workspace")


class Config():
    """
    Centralized configuration for environment variables.
    """

    # logging configuration
    LOG_LEVEL: int = logging.getLevelNamesMapping().get(
        os.getenv("LOG_LEVEL", "INFO").upper(),
        logging.INFO
    )
    LOG_DATE_FORMAT: str = os.getenv("LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "[%(asctime)s] %(levelname)s:%(name)s:%(message)s")

    # API keys and endpoints
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OLLAMA_URL: str = os.getenv("OLLAMA_URL", "http://localhost:11434")

    # Provider selection: "openai", "anthropic" or "ollama"
    DEEPSEARCH_PROVIDER: str | None = os.getenv("DEEPSEARCH_PROVIDER")
    DEEPSEARCH_MODEL: str | None = os.getenv("DEEPSEARCH_MODEL")
    DEEPSEARCH_CUSTOM_PROMPT: str | None = os.getenv("DEEPSEARCH_CUSTOM_PROMPT")
    DEEPSEARCH_TOOL_CALLING: bool = _env_bool("DEEPSEARCH_TOOL_CALLING", True)
    LLM_REQUEST_TIMEOUT: float = float(os.getenv("DEEPSEARCH_LLM_REQUEST_TIMEOUT", "120"))

    # Upstream service
    NEXTDOOR_BASE_URL: str = os.getenv("NEXTDOOR_BASE_URL", "https://nextdoor.com")
    SESSION_HEADER_NAME: str = os.getenv("DEEPSEARCH_SESSION_HEADER", "x-nd-uti")

    # Capture and replay tuning
    CAPTURE_TTL_SECONDS: float = float(os.getenv("DEEPSEARCH_CAPTURE_TTL_SECONDS", "5.0"))
    REPLAY_DELAY_SECONDS: float = float(os.getenv("DEEPSEARCH_REPLAY_DELAY_SECONDS", "0.15"))
    REPLAY_REQUEST_TIMEOUT: float = float(os.getenv("DEEPSEARCH_REPLAY_REQUEST_TIMEOUT", "30"))
    TOOL_SEARCH_MAX_ITEMS: int = int(os.getenv("DEEPSEARCH_TOOL_SEARCH_MAX_ITEMS", "10"))
    COMMENT_MAX_DEPTH: int = int(os.getenv("DEEPSEARCH_COMMENT_MAX_DEPTH", "50"))

    # Persistence
    WORKSPACE_DIR: str = _WORKSPACE_DIR
    TEMPLATE_STORE_PATH: str | None = os.getenv(
        "DEEPSEARCH_TEMPLATE_STORE_PATH", os.path.join(_WORKSPACE_DIR, "templates.json")
    ) or None
    LAST_RESULT_PATH: str | None = os.getenv(
        "DEEPSEARCH_LAST_RESULT_PATH", os.path.join(_WORKSPACE_DIR, "last_search.json")
    ) or None
    # Session-identifying headers are stripped from persisted templates unless this is set
    PERSIST_SENSITIVE_HEADERS: bool = _env_bool("DEEPSEARCH_PERSIST_SENSITIVE_HEADERS", False)

    @classmethod
    def as_dict(cls) -> dict[str, Any]:
        """
        Return a dictionary of all UPPERCASE class attributes and their values.
        Return:
            dict[str, Any]: A dictionary of all UPPERCASE class attributes and their values.
        """
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper()
        }
