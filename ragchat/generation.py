"""Chat-model response generation with one simplified retry and mock fallback."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from openai import OpenAI

from .config import config
from .models import ChatMessage, ConversationTurn
from .prompts import HistoryFormatter, build_system_prompt, recall_memory
from .responder import mock_response

logger = config.get_logger(__name__)

EMPTY_RESPONSE_REPLY = "I could not generate a response."

ResponseSource = Literal["model", "retry", "mock"]


@dataclass(frozen=True)
class GenerationResult:
    """Generated reply text and which branch produced it."""

    content: str
    source: ResponseSource


class ResponseEngine:
    """Generates assistant replies and never lets a model failure escape.

    Every call ends in one of: a model reply, a reply from the retry with
    history dropped, or the deterministic mock responder.
    """

    def __init__(  # noqa: PLR0913,PLR0917
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        formatter: HistoryFormatter | None = None,
        client: OpenAI | None = None,
        system_prompt: str | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            api_key: OpenAI API key. If None, reads OPENAI_API_KEY. Without a
                key the engine stays on the mock responder.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            max_tokens: Output token ceiling. If None, uses config.CHAT_MAX_TOKENS.
            temperature: Sampling temperature. If None, uses
                config.CHAT_TEMPERATURE.
            formatter: History formatter. Defaults to configured limits.
            client: Pre-built OpenAI client, mainly for tests.
            system_prompt: Persona instruction. If None, uses
                config.SYSTEM_PROMPT.
        """
        self.model = model or config.CHAT_MODEL
        self.max_tokens = max_tokens if max_tokens is not None else config.CHAT_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )
        self.formatter = formatter or HistoryFormatter()
        self.system_prompt = system_prompt or config.SYSTEM_PROMPT
        self.client: OpenAI | None = client
        self.use_mock_responses = False

        if self.client is None:
            api_key = api_key or config.get_openai_api_key()
            if api_key:
                try:
                    self.client = OpenAI(
                        api_key=api_key,
                        base_url=config.OPENAI_BASE_URL,
                        default_headers=config.get_api_headers() or None,
                        timeout=config.CHAT_TIMEOUT,
                        max_retries=0,
                    )
                except Exception:
                    logger.exception("OpenAI client init failed, using mock responses")

        if self.client is None:
            self.use_mock_responses = True
            logger.warning("No chat model configured, replies use the mock responder")

    def _complete(self, messages: list[ChatMessage]) -> str:
        if self.client is None:
            msg = "Chat model client is not configured"
            raise RuntimeError(msg)

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[message.to_api() for message in messages],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        logger.debug("Chat completion usage: %s", getattr(response, "usage", None))

        answer = response.choices[0].message.content if response.choices else None
        if answer and answer.strip():
            return answer.strip()
        return EMPTY_RESPONSE_REPLY

    def generate_with_details(
        self,
        conversation_id: str,
        enhanced_prompt: str,
        history: Sequence[ConversationTurn],
        query: str | None = None,
    ) -> GenerationResult:
        """Generate a reply and report which branch produced it.

        Args:
            conversation_id: Conversation the reply belongs to (for logging).
            enhanced_prompt: Final user turn, possibly RAG-enhanced.
            history: Prior turns in ascending creation order.
            query: The user's original text. Drives memory recall and the
                mock responder; defaults to ``enhanced_prompt``.

        Returns:
            GenerationResult with the reply text and its source.
        """
        query = enhanced_prompt if query is None else query

        if self.use_mock_responses:
            return GenerationResult(mock_response(query), "mock")

        system_prompt = build_system_prompt(
            self.system_prompt, recall_memory(query, history)
        )
        messages = self.formatter.build_messages(system_prompt, history, enhanced_prompt)

        try:
            return GenerationResult(self._complete(messages), "model")
        except Exception:
            logger.exception(
                "Chat completion failed for conversation %s, retrying without history",
                conversation_id,
            )

        simplified = self.formatter.build_simplified_messages(
            system_prompt, enhanced_prompt
        )
        try:
            return GenerationResult(self._complete(simplified), "retry")
        except Exception:
            logger.exception(
                "Simplified retry failed for conversation %s, using mock response",
                conversation_id,
            )

        return GenerationResult(mock_response(query), "mock")

    def generate_response(
        self,
        conversation_id: str,
        enhanced_prompt: str,
        history: Sequence[ConversationTurn],
        query: str | None = None,
    ) -> str:
        """Generate reply text for the final user turn.

        Returns:
            Reply text; never raises on model or transport failure.
        """
        return self.generate_with_details(
            conversation_id, enhanced_prompt, history, query=query
        ).content
