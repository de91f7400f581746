"""In-process conversation store feeding the pipeline its history."""

import datetime
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from .config import config
from .models import ConversationTurn, PipelineReply, Role
from .pipeline import ChatPipeline

logger = config.get_logger(__name__)


class ConversationManager:
    """Keeps one conversation's turns and routes new messages through the pipeline.

    Stands in for the persistence layer in the CLI and the Streamlit UI: the
    log is append-only and always handed to the pipeline oldest first.
    """

    def __init__(
        self,
        pipeline: ChatPipeline,
        subject_id: str,
        conversation_id: str | None = None,
    ) -> None:
        """Initialize ConversationManager.

        Args:
            pipeline: Message pipeline instance.
            subject_id: Owner of the conversation.
            conversation_id: Conversation id. A random one is generated if None.
        """
        self.pipeline: ChatPipeline = pipeline
        self.subject_id = subject_id
        self.conversation_id = conversation_id or uuid.uuid4().hex
        self.conversation_history: list[ConversationTurn] = []
        self.last_reply: PipelineReply | None = None

    def load_history(self, records: Iterable[Mapping[str, Any]]) -> None:
        """Replace the log with persisted message records.

        Records carry a ``sender`` marker instead of a role; assistant replies
        are stored with ``system``/``ai`` senders. Turns are ordered by
        ``createdAt`` as the persistence layer returns them.

        Raises:
            ValueError: If a record has no ``createdAt`` timestamp.
        """
        turns = [ConversationTurn.from_record(record) for record in records]
        self.conversation_history = sorted(turns, key=lambda turn: turn.created_at)
        self.last_reply = None
        logger.info(
            "Loaded %d stored turns into conversation %s",
            len(self.conversation_history),
            self.conversation_id,
        )

    def _append(self, role: Role, content: str) -> ConversationTurn:
        now = datetime.datetime.now(tz=datetime.UTC)
        if self.conversation_history and now < self.conversation_history[-1].created_at:
            now = self.conversation_history[-1].created_at
        turn = ConversationTurn(role=role, content=content, created_at=now)
        self.conversation_history.append(turn)
        return turn

    def send(self, content: str) -> PipelineReply:
        """Send a user message and record both it and the reply.

        Returns:
            The pipeline reply for ``content``.
        """
        logger.info("Processing message in conversation %s", self.conversation_id)
        prior_turns = list(self.conversation_history)
        reply = self.pipeline.handle_user_message(
            self.conversation_id, self.subject_id, content, prior_turns
        )

        self._append(Role.USER, content)
        self._append(Role.ASSISTANT, reply.content)
        self.last_reply = reply
        return reply

    def clear_history(self) -> None:
        """Clear the conversation history."""
        self.conversation_history = []
        self.last_reply = None
        logger.info("Conversation history cleared.")
