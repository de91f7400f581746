"""RAGChat - chat reply pipeline with optional retrieval-augmented prompts."""

from .classifier import MessageClassifier, is_trivial, should_use_semantic_search
from .conversation import ConversationManager
from .embeddings import EmbeddingClient
from .generation import GenerationResult, ResponseEngine
from .models import (
    ChatMessage,
    ConversationTurn,
    EmbeddingStatus,
    PipelineReply,
    RAGMatch,
    RAGResult,
    Role,
)
from .pipeline import ChatPipeline
from .prompts import HistoryFormatter, PromptComposer
from .responder import mock_response

__all__ = [
    "ChatMessage",
    "ChatPipeline",
    "ConversationManager",
    "ConversationTurn",
    "EmbeddingClient",
    "EmbeddingStatus",
    "GenerationResult",
    "HistoryFormatter",
    "MessageClassifier",
    "PipelineReply",
    "PromptComposer",
    "RAGMatch",
    "RAGResult",
    "ResponseEngine",
    "Role",
    "is_trivial",
    "mock_response",
    "should_use_semantic_search",
]
