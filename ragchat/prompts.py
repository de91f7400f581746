"""Prompt composition: RAG context merging, history windowing, memory recall."""

import re
from collections.abc import Sequence

from .classifier import MessageClassifier, default_classifier
from .config import config
from .embeddings import EmbeddingClient
from .models import ChatMessage, ConversationTurn, Role

logger = config.get_logger(__name__)

CONTEXT_HEADER = "### Relevant Previous Information:"
QUERY_HEADER = "### Current User Query:"
TRUNCATION_MARKER = "... [content truncated]"
MEMORY_HEADER = "Here are some things the user said previously:"

RECALL_TRIGGERS = (
    "what did i say",
    "earlier",
    "before",
    "previous",
    "remind me",
    "last time",
)
RECALL_STOPWORDS = frozenset(
    {"what", "did", "i", "say", "about", "the", "last", "time", "you"}
)


class PromptComposer:
    """Builds the enhanced prompt for the current user query."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        classifier: MessageClassifier | None = None,
        max_context_chars: int | None = None,
    ) -> None:
        self.embedding_client = embedding_client
        self.classifier = classifier or default_classifier
        self.max_context_chars = (
            max_context_chars if max_context_chars is not None else config.MAX_TURN_CHARS
        )

    def compose_prompt(
        self,
        subject_id: str,
        raw_query: str,
        conversation_id: str | None,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        """Merge retrieved context in front of the user's query.

        The history is accepted for callers that compose with it in view;
        retrieval is scoped by subject and conversation instead.

        Returns:
            The labeled context + query text, or ``raw_query`` unchanged when
            enhancement is skipped or retrieval fails.
        """
        if not self.embedding_client.is_enabled():
            return raw_query
        if not self.classifier.should_use_semantic_search(raw_query):
            return raw_query

        try:
            rag_result = self.embedding_client.get_rag_response(
                subject_id, raw_query, conversation_id
            )
        except Exception:
            logger.exception("Error enhancing prompt with RAG")
            return raw_query

        if rag_result.degraded:
            logger.warning("RAG context unavailable, using the original query")
            return raw_query

        logger.debug(
            "Composed RAG prompt with %d prior turns in view", len(history)
        )
        context = truncate(rag_result.context or "", self.max_context_chars)
        return format_enhanced_prompt(context, raw_query)


def format_enhanced_prompt(context: str, query: str) -> str:
    return "\n".join([CONTEXT_HEADER, context, f"\n{QUERY_HEADER}", query])


def truncate(content: str, max_chars: int) -> str:
    if len(content) > max_chars:
        return content[:max_chars] + TRUNCATION_MARKER
    return content


class HistoryFormatter:
    """Bounds and role-tags conversation history for the chat model."""

    def __init__(
        self,
        max_turns: int | None = None,
        max_turn_chars: int | None = None,
    ) -> None:
        self.max_turns = max_turns if max_turns is not None else config.MAX_HISTORY_TURNS
        self.max_turn_chars = (
            max_turn_chars if max_turn_chars is not None else config.MAX_TURN_CHARS
        )

    def format_history(self, history: Sequence[ConversationTurn]) -> list[ChatMessage]:
        """Keep the most recent turns, oldest first, each length-bounded.

        Returns:
            Role-tagged messages in the same relative order as ``history``.
        """
        window = list(history)[-self.max_turns :] if self.max_turns > 0 else []
        return [
            ChatMessage(
                role=Role.ASSISTANT if turn.role is Role.ASSISTANT else Role.USER,
                content=truncate(turn.content or "", self.max_turn_chars),
            )
            for turn in window
        ]

    def build_messages(
        self,
        system_prompt: str,
        history: Sequence[ConversationTurn],
        prompt: str,
    ) -> list[ChatMessage]:
        """Assemble system instruction, formatted history and the prompt.

        Returns:
            Messages ending with ``prompt`` as the final user turn.
        """
        return [
            ChatMessage(role=Role.SYSTEM, content=system_prompt),
            *self.format_history(history),
            ChatMessage(role=Role.USER, content=prompt),
        ]

    def build_simplified_messages(
        self, system_prompt: str, prompt: str
    ) -> list[ChatMessage]:
        """Same as ``build_messages`` with all history dropped."""
        return self.build_messages(system_prompt, (), prompt)


def recall_memory(
    query: str,
    history: Sequence[ConversationTurn],
    limit: int = 3,
) -> list[str]:
    """Find earlier user statements the query explicitly asks about.

    Only runs when the query contains a recall trigger such as "earlier" or
    "remind me". The last meaningful word of the query is the search key.

    Returns:
        Up to ``limit`` bullet snippets, newest first.
    """
    lowered = query.lower()
    if not any(trigger in lowered for trigger in RECALL_TRIGGERS):
        return []

    keywords = [
        word
        for word in re.findall(r"[\w']+", lowered)
        if word not in RECALL_STOPWORDS
    ]
    if not keywords:
        return []

    keyword = re.compile(re.escape(keywords[-1]), re.IGNORECASE)
    snippets = [
        f"• {turn.content}"
        for turn in reversed(history)
        if turn.role is Role.USER and keyword.search(turn.content)
    ]
    return snippets[:limit]


def build_system_prompt(persona: str, memory_snippets: Sequence[str] = ()) -> str:
    if not memory_snippets:
        return persona
    memory = "\n".join(memory_snippets)
    return f"{persona}\n\n{MEMORY_HEADER}\n{memory}"
