"""Test configuration and fixtures for RAGChat tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Fake embedding/RAG service (httpx mock transport)
- Mock chat completion responses
- Engine, composer and pipeline factories
- Conversation history factories
"""

import datetime
import json
from collections.abc import Callable
from unittest.mock import Mock

import httpx
import pytest

from ragchat import (
    ChatPipeline,
    ConversationTurn,
    EmbeddingClient,
    HistoryFormatter,
    ResponseEngine,
    Role,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    TEST_API_KEY = "test-key"
    TEST_MODEL = "gpt-3.5-turbo"
    TEST_BASE_URL = "http://embedding.test"
    SUBJECT_ID = "user_123"
    CONVERSATION_ID = "thread_456"

    DEFAULT_RAG_CONTEXT = "past discussion about vectors"
    DEFAULT_RAG_ANSWER = "Vectors capture meaning."
    BASE_TIME = datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.UTC)


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response.

    Args:
        content: The content for the chat completion response.

    Returns:
        Mock object representing OpenAI chat completion response.
    """
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    mock_response.usage = Mock(total_tokens=42)
    return mock_response


class FakeEmbeddingService:
    """Records requests and answers like the external embedding service."""

    def __init__(
        self,
        scenario: str = "ok",
        rag_payload: dict | None = None,
        status_code: int = 500,
    ) -> None:
        self.scenario = scenario
        self.rag_payload = rag_payload or {
            "answer": TestConstants.DEFAULT_RAG_ANSWER,
            "context": TestConstants.DEFAULT_RAG_CONTEXT,
            "matches": [{"content": "vectors", "score": 0.91}],
        }
        self.status_code = status_code
        self.requests: list[tuple[str, dict]] = []

    def paths(self) -> list[str]:
        return [path for path, _ in self.requests]

    def bodies(self, path: str) -> list[dict]:
        return [body for p, body in self.requests if p == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, body))

        if self.scenario == "connect_error":
            msg = "connection refused"
            raise httpx.ConnectError(msg, request=request)
        if self.scenario == "http_error":
            return httpx.Response(self.status_code, json={"detail": "boom"})
        if self.scenario == "invalid_json":
            return httpx.Response(200, content=b"not json")

        if request.url.path == "/embed":
            return httpx.Response(200, json={"status": "success", "vector": [0.1, 0.2]})
        if request.url.path == "/rag-generate":
            return httpx.Response(200, json=self.rag_payload)
        return httpx.Response(404, json={"detail": "not found"})


@pytest.fixture
def fake_service_factory():
    """Factory for fake embedding services with different scenarios."""

    def _create_service(scenario: str = "ok", **kwargs) -> FakeEmbeddingService:  # noqa: ANN003
        return FakeEmbeddingService(scenario, **kwargs)

    return _create_service


@pytest.fixture
def embedding_client_factory(fake_service_factory):
    """Factory returning (client, fake service) pairs backed by a mock transport."""
    clients: list[EmbeddingClient] = []

    def _create_client(
        scenario: str = "ok", **kwargs
    ) -> tuple[EmbeddingClient, FakeEmbeddingService]:  # noqa: ANN003
        service = fake_service_factory(scenario, **kwargs)
        client = EmbeddingClient(
            base_url=TestConstants.TEST_BASE_URL,
            timeout=1.0,
            transport=httpx.MockTransport(service),
        )
        clients.append(client)
        return client, service

    yield _create_client

    for client in clients:
        client.close()


@pytest.fixture
def disabled_embedding_client():
    """Embedding client with no base URL configured."""
    return EmbeddingClient(base_url="")


@pytest.fixture
def chat_client_factory():
    """Factory for mock OpenAI clients with a configured completions.create."""

    def _create_client(content: str | None = "Test response", side_effect=None) -> Mock:  # noqa: ANN001
        client = Mock()
        create = client.chat.completions.create
        if side_effect is not None:
            create.side_effect = side_effect
        else:
            create.return_value = create_mock_chat_response(content)
        return client

    return _create_client


@pytest.fixture
def response_engine_factory(chat_client_factory):
    """Factory for ResponseEngine instances around a mock chat client."""

    def _create_engine(
        content: str | None = "Test response",
        side_effect=None,  # noqa: ANN001
        formatter: HistoryFormatter | None = None,
    ) -> ResponseEngine:
        client = chat_client_factory(content, side_effect=side_effect)
        return ResponseEngine(
            model=TestConstants.TEST_MODEL,
            max_tokens=1000,
            temperature=0.7,
            formatter=formatter,
            client=client,
            system_prompt="You are a helpful and friendly AI assistant.",
        )

    return _create_engine


@pytest.fixture
def mock_engine(monkeypatch) -> ResponseEngine:
    """ResponseEngine running in mock mode (no credential)."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return ResponseEngine(api_key="")


@pytest.fixture
def history_factory() -> Callable[..., list[ConversationTurn]]:
    """Factory for alternating user/assistant turns one minute apart."""

    def _create_history(count: int, prefix: str = "Message") -> list[ConversationTurn]:
        return [
            ConversationTurn(
                role=Role.USER if i % 2 == 0 else Role.ASSISTANT,
                content=f"{prefix} {i}",
                created_at=TestConstants.BASE_TIME + datetime.timedelta(minutes=i),
            )
            for i in range(count)
        ]

    return _create_history


@pytest.fixture
def pipeline_factory():
    """Factory for ChatPipeline instances that embed replies synchronously."""
    pipelines: list[ChatPipeline] = []

    def _create_pipeline(
        embedding_client: EmbeddingClient,
        engine: ResponseEngine,
        **kwargs,  # noqa: ANN003
    ) -> ChatPipeline:
        kwargs.setdefault("await_reply_embedding", True)
        pipeline = ChatPipeline(
            embedding_client=embedding_client, engine=engine, **kwargs
        )
        pipelines.append(pipeline)
        return pipeline

    yield _create_pipeline

    for pipeline in pipelines:
        pipeline.close()
