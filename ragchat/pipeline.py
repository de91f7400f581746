"""Message pipeline orchestrating classify -> embed -> retrieve -> generate.

Each step has one degrade rule and no step below the orchestrator raises
for environmental failures:

=====================  ===========  ==========================================
Step                   Failure      Degrades to
=====================  ===========  ==========================================
create_embedding       any          error status, ignored
get_rag_response       any          canned degraded result
compose_prompt         any          the raw user message
model call             any          one retry with system + final user turn
simplified retry       any          mock responder
orchestration          unexpected   plain generation, ``used_fallback=True``
reply embedding        any          logged only
=====================  ===========  ==========================================

Mock responder output is never embedded, so canned replies do not end up
in the retrieval store.

Only caller contract violations (missing identifiers, malformed or
out-of-order history) escape as exceptions.
"""

import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor

from .classifier import MessageClassifier, default_classifier
from .config import config
from .embeddings import EmbeddingClient
from .generation import GenerationResult, ResponseEngine
from .models import ConversationTurn, EmbeddingStatus, PipelineReply
from .prompts import PromptComposer

logger = config.get_logger(__name__)

FALLBACK_WARNING = (
    "Extended knowledge was unavailable, so this reply was generated "
    "without related past context."
)
REPLY_EMBEDDING_WORKERS = 4


class ChatPipeline:
    """Produces an assistant reply for one inbound user message."""

    def __init__(  # noqa: PLR0913,PLR0917
        self,
        embedding_client: EmbeddingClient | None = None,
        engine: ResponseEngine | None = None,
        composer: PromptComposer | None = None,
        classifier: MessageClassifier | None = None,
        reply_embedding_min_chars: int | None = None,
        await_reply_embedding: bool | None = None,
    ) -> None:
        """Initialize the pipeline from injected collaborators.

        Args:
            embedding_client: Embedding/RAG service client. If None, one is
                built from config.EMBEDDING_API_URL.
            engine: Response engine. If None, one is built from config.
            composer: Prompt composer. Defaults to one over ``embedding_client``.
            classifier: Trivial/semantic gating. Defaults to the standard lists.
            reply_embedding_min_chars: Replies longer than this are embedded.
                If None, uses config.REPLY_EMBEDDING_MIN_CHARS.
            await_reply_embedding: Embed replies before returning instead of
                on a worker thread. If None, uses config.AWAIT_REPLY_EMBEDDING.
        """
        self.embedding_client = embedding_client or EmbeddingClient()
        self.engine = engine or ResponseEngine()
        self.classifier = classifier or default_classifier
        self.composer = composer or PromptComposer(
            self.embedding_client, classifier=self.classifier
        )
        self.reply_embedding_min_chars = (
            reply_embedding_min_chars
            if reply_embedding_min_chars is not None
            else config.REPLY_EMBEDDING_MIN_CHARS
        )
        self.await_reply_embedding = (
            await_reply_embedding
            if await_reply_embedding is not None
            else config.AWAIT_REPLY_EMBEDDING
        )
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def handle_user_message(
        self,
        conversation_id: str,
        subject_id: str,
        content: str,
        history: Sequence[ConversationTurn] = (),
    ) -> PipelineReply:
        """Generate the reply to ``content`` given the prior turns.

        Args:
            conversation_id: Conversation (thread) the message belongs to.
            subject_id: Owner of the conversation (user id).
            content: The inbound user message.
            history: Prior turns in ascending creation order, excluding
                ``content`` itself.

        Returns:
            PipelineReply with the reply text and whether a degraded path was
            used.
        """
        validate_request(conversation_id, subject_id, content, history)

        if self.classifier.is_trivial(content):
            logger.info("Trivial message in %s, skipping RAG", conversation_id)
            result = self.engine.generate_with_details(
                conversation_id, content, history, query=content
            )
            return PipelineReply(content=result.content)

        used_fallback = False
        result: GenerationResult | None = None
        if self.embedding_client.is_enabled():
            try:
                result = self._generate_enhanced(
                    conversation_id, subject_id, content, history
                )
            except Exception:
                logger.exception(
                    "RAG path failed for %s, generating without enhancement",
                    conversation_id,
                )
        else:
            logger.info("Embedding service disabled, generating without RAG")

        if result is None:
            used_fallback = True
            result = self.engine.generate_with_details(
                conversation_id, content, history, query=content
            )

        reply = result.content
        if (
            result.source != "mock"
            and self.embedding_client.is_enabled()
            and len(reply) > self.reply_embedding_min_chars
        ):
            self._embed_reply(subject_id, reply, conversation_id)

        return PipelineReply(
            content=reply,
            used_fallback=used_fallback,
            warning=FALLBACK_WARNING if used_fallback else None,
        )

    def _generate_enhanced(
        self,
        conversation_id: str,
        subject_id: str,
        content: str,
        history: Sequence[ConversationTurn],
    ) -> GenerationResult:
        status = self.embedding_client.create_embedding(
            subject_id, content, conversation_id
        )
        if not status.ok:
            logger.warning("Message embedding skipped: %s", status.error)

        enhanced_prompt = self.composer.compose_prompt(
            subject_id, content, conversation_id, history
        )
        if enhanced_prompt != content:
            logger.info("Using RAG-enhanced prompt for %s", conversation_id)

        return self.engine.generate_with_details(
            conversation_id, enhanced_prompt, history, query=content
        )

    def _embed_reply(
        self, subject_id: str, reply: str, conversation_id: str
    ) -> Future[EmbeddingStatus] | None:
        if self.await_reply_embedding:
            self._store_reply_embedding(subject_id, reply, conversation_id)
            return None

        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=REPLY_EMBEDDING_WORKERS,
                    thread_name_prefix="reply-embedding",
                )
            return self._executor.submit(
                self._store_reply_embedding, subject_id, reply, conversation_id
            )

    def _store_reply_embedding(
        self, subject_id: str, reply: str, conversation_id: str
    ) -> EmbeddingStatus:
        try:
            status = self.embedding_client.create_embedding(
                subject_id, reply, conversation_id
            )
        except Exception as e:
            logger.exception("Failed to create embedding for AI response")
            return EmbeddingStatus.from_error(str(e))

        if not status.ok:
            logger.warning("Reply embedding failed: %s", status.error)
        return status

    def close(self, wait: bool = True) -> None:
        """Wait for pending reply embeddings and release the worker threads."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)


def validate_request(
    conversation_id: str,
    subject_id: str,
    content: str,
    history: Sequence[ConversationTurn],
) -> None:
    """Reject calls that break the pipeline's input contract.

    Raises:
        ValueError: If an identifier is empty or history is out of order.
        TypeError: If content is not text or a history entry is not a
            ConversationTurn.
    """
    if not conversation_id:
        msg = "conversation_id is required"
        raise ValueError(msg)
    if not subject_id:
        msg = "subject_id is required"
        raise ValueError(msg)
    if not isinstance(content, str):
        msg = f"content must be str, got {type(content).__name__}"
        raise TypeError(msg)

    previous = None
    for i, turn in enumerate(history):
        if not isinstance(turn, ConversationTurn):
            msg = f"history[{i}] must be ConversationTurn, got {type(turn).__name__}"
            raise TypeError(msg)
        if previous is not None and turn.created_at < previous.created_at:
            msg = f"history[{i}] is older than the turn before it"
            raise ValueError(msg)
        previous = turn
