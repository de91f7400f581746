"""Configuration management for the RAGChat message pipeline."""

import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)

MAX_TEMPERATURE = 2.0


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Application configuration loaded from environment variables."""

    # OpenAI Configuration
    @classmethod
    def get_openai_api_key(cls) -> str:
        """Get OpenAI API key from environment variables.

        Returns:
            OpenAI API key from environment or empty string if not set.
        """
        return os.getenv("OPENAI_API_KEY", "")

    OPENAI_BASE_URL: str | None = os.getenv("OPENAI_BASE_URL")

    # Embedding / RAG service Configuration
    @classmethod
    def get_embedding_api_url(cls) -> str:
        """Get the embedding service base URL from environment variables.

        Returns:
            Base URL without a trailing slash, or empty string if not set.
        """
        return os.getenv("EMBEDDING_API_URL", "").strip().rstrip("/")

    EMBEDDING_API_TIMEOUT: float = float(os.getenv("EMBEDDING_API_TIMEOUT", "10.0"))

    # Logging Configuration
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    OPENAI_LOG_LEVEL: str = os.getenv("OPENAI_LOG_LEVEL", "WARNING").upper()
    HTTPX_LOG_LEVEL: str = os.getenv("HTTPX_LOG_LEVEL", "WARNING").upper()

    # Chat Model Configuration
    CHAT_MODEL: str = os.getenv("CHAT_MODEL", "gpt-3.5-turbo")
    CHAT_MAX_TOKENS: int = int(os.getenv("CHAT_MAX_TOKENS", "1000"))
    CHAT_TEMPERATURE: float = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
    CHAT_TIMEOUT: float = float(os.getenv("CHAT_TIMEOUT", "30.0"))
    SYSTEM_PROMPT: str = os.getenv(
        "SYSTEM_PROMPT", "You are a helpful and friendly AI assistant."
    )

    # Conversation Context Configuration
    MAX_HISTORY_TURNS: int = int(os.getenv("MAX_HISTORY_TURNS", "10"))
    MAX_TURN_CHARS: int = int(os.getenv("MAX_TURN_CHARS", "4000"))

    # Reply Embedding Configuration
    REPLY_EMBEDDING_MIN_CHARS: int = int(os.getenv("REPLY_EMBEDDING_MIN_CHARS", "20"))
    AWAIT_REPLY_EMBEDDING: bool = _env_flag("AWAIT_REPLY_EMBEDDING")

    # API Header Configuration
    API_USER_AGENT: str = os.getenv("API_USER_AGENT", "RAGChat/1.0")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values that would otherwise fail late.

        Both the model credential and the embedding service are optional:
        without them the pipeline runs on the mock responder and skips RAG.

        Raises:
            ValueError: If EMBEDDING_API_URL is not an http(s) URL or
                CHAT_TEMPERATURE is out of range.
        """
        url = cls.get_embedding_api_url()
        if url:
            parsed = urlparse(url)
            if parsed.scheme not in {"http", "https"} or not parsed.netloc:
                msg = f"EMBEDDING_API_URL must be an http(s) URL, got: {url!r}"
                raise ValueError(msg)

        if not 0.0 <= cls.CHAT_TEMPERATURE <= MAX_TEMPERATURE:
            msg = (
                f"CHAT_TEMPERATURE must be between 0 and {MAX_TEMPERATURE}, "
                f"got: {cls.CHAT_TEMPERATURE}"
            )
            raise ValueError(msg)

    @classmethod
    def status(cls) -> dict[str, bool]:
        """Report which optional external services are configured.

        Returns:
            Mapping of service name to whether its settings are present.
        """
        return {
            "openai_api_key": bool(cls.get_openai_api_key()),
            "openai_base_url": bool(cls.OPENAI_BASE_URL),
            "embedding_api_url": bool(cls.get_embedding_api_url()),
        }

    @classmethod
    def setup_logging(cls) -> None:
        """Setup basic logging configuration.

        Configure logging once at application startup with:
        - Console output for all levels
        - Simple, readable format
        - Configurable level via environment variable
        """
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )

        # Configure third-party library log levels via environment variables
        logging.getLogger("openai").setLevel(
            getattr(logging, cls.OPENAI_LOG_LEVEL, logging.WARNING)
        )
        logging.getLogger("httpx").setLevel(
            getattr(logging, cls.HTTPX_LOG_LEVEL, logging.WARNING)
        )

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name.

        Args:
            name: Logger name (typically __name__)

        Returns:
            Logger instance
        """
        return logging.getLogger(name)

    @classmethod
    def get_api_headers(cls) -> dict[str, str]:
        """Build default headers for outbound API calls.

        Returns:
            Mapping of header names to values used on outbound HTTP requests.
        """
        headers: dict[str, str] = {}

        if cls.API_USER_AGENT:
            headers["User-Agent"] = cls.API_USER_AGENT

        return headers


config = Config()
