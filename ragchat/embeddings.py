"""HTTP client for the external embedding and RAG service."""

import time
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from .config import config
from .models import EmbeddingStatus, RAGResult

logger = config.get_logger(__name__)

DISABLED_ERROR = "Embedding Service is disabled: No API URL available"
DISABLED_RAG_ANSWER = (
    "I couldn't access my extended knowledge at the moment. "
    "The embedding service is not configured."
)
DISABLED_RAG_CONTEXT = "Embedding Service disabled: No API URL available"
FAILED_RAG_ANSWER = (
    "I couldn't retrieve relevant information at the moment. "
    "How else can I assist you?"
)
FAILED_RAG_CONTEXT = "Error retrieving context"
QUERY_LOG_PREVIEW = 50


class EmbeddingClient:
    """Wraps the embedding service's ``/embed`` and ``/rag-generate`` endpoints.

    Without a base URL the client is disabled for its whole lifetime and
    never touches the network. With one, every call is a single attempt
    whose failure is converted into a degraded return value.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service base URL. If None, uses EMBEDDING_API_URL.
            timeout: Per-request timeout in seconds. If None, uses
                config.EMBEDDING_API_TIMEOUT.
            headers: Extra headers. Defaults to config.get_api_headers().
            transport: Optional httpx transport, used to stub the service.
        """
        if base_url is None:
            base_url = config.get_embedding_api_url()
        self.base_url = base_url.strip().rstrip("/")
        self.timeout = timeout if timeout is not None else config.EMBEDDING_API_TIMEOUT
        self.enabled = bool(self.base_url)
        self.http: httpx.Client | None = None

        if self.enabled:
            self.http = httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=dict(headers or config.get_api_headers()),
                transport=transport,
            )
            logger.info("Embedding service initialized with API URL: %s", self.base_url)
        else:
            logger.warning("Embedding service disabled: no API URL configured")

    def is_enabled(self) -> bool:
        return self.enabled

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        if self.http is None:
            raise RuntimeError(DISABLED_ERROR)
        response = self.http.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    def create_embedding(
        self,
        subject_id: str,
        content: str,
        conversation_id: str | None = None,
        turn_id: str | None = None,
    ) -> EmbeddingStatus:
        """Submit text to be embedded and stored by the service.

        Args:
            subject_id: Owner of the embedding (user id).
            content: Text to embed.
            conversation_id: Optional conversation (thread) scope.
            turn_id: Optional message reference.

        Returns:
            The service status, or an error status on any failure.
        """
        if not self.enabled:
            logger.warning(DISABLED_ERROR)
            return EmbeddingStatus.from_error(DISABLED_ERROR)

        payload: dict[str, Any] = {"userId": subject_id, "content": content}
        if conversation_id is not None:
            payload["threadId"] = conversation_id
        if turn_id is not None:
            payload["messageId"] = turn_id

        reference = turn_id or "unknown"
        try:
            data = self._post("/embed", payload)
            if not isinstance(data, Mapping):
                msg = f"Unexpected /embed response: {type(data).__name__}"
                raise TypeError(msg)
            result = EmbeddingStatus.from_payload(data)
        except httpx.HTTPStatusError as e:
            logger.exception("Error creating embedding for message: %s", reference)
            return EmbeddingStatus.from_error(
                f"API error: {e.response.status_code} - {e!s}"
            )
        except httpx.HTTPError as e:
            logger.exception("Error creating embedding for message: %s", reference)
            return EmbeddingStatus.from_error(f"API error: unknown - {e!s}")
        except (AttributeError, TypeError, ValueError):
            logger.exception("Error creating embedding for message: %s", reference)
            return EmbeddingStatus.from_error("Failed to create embedding")
        else:
            logger.info("Embedding created for message: %s", reference)
            return result

    def create_embeddings_batch(
        self,
        records: Iterable[Mapping[str, Any]],
        delay: float = 0.0,
    ) -> list[EmbeddingStatus]:
        """Submit several stored messages for embedding, one request each.

        Args:
            records: Mappings with ``userId``, ``content`` and optional
                ``threadId`` / ``messageId`` keys.
            delay: Seconds to wait between requests.

        Returns:
            One status per record, in input order.
        """
        results: list[EmbeddingStatus] = []
        for i, record in enumerate(records):
            if i and delay > 0:
                time.sleep(delay)
            results.append(
                self.create_embedding(
                    str(record["userId"]),
                    str(record["content"]),
                    conversation_id=record.get("threadId"),
                    turn_id=record.get("messageId"),
                )
            )

        succeeded = sum(1 for status in results if status.ok)
        logger.info("Embedded %d/%d records", succeeded, len(results))
        return results

    def get_rag_response(
        self,
        subject_id: str,
        query: str,
        conversation_id: str | None = None,
    ) -> RAGResult:
        """Retrieve an answer and related context for a query.

        Returns:
            The service result, or a canned degraded result on any failure.
        """
        if not self.enabled:
            logger.warning(DISABLED_ERROR)
            return RAGResult(
                answer=DISABLED_RAG_ANSWER,
                context=DISABLED_RAG_CONTEXT,
                degraded=True,
            )

        payload: dict[str, Any] = {"userId": subject_id, "query": query}
        if conversation_id is not None:
            payload["threadId"] = conversation_id

        logger.info(
            'Getting RAG response for query: "%s..."', query[:QUERY_LOG_PREVIEW]
        )
        try:
            data = self._post("/rag-generate", payload)
            if not isinstance(data, Mapping):
                msg = f"Unexpected /rag-generate response: {type(data).__name__}"
                raise TypeError(msg)
            result = RAGResult.from_payload(data)
        except httpx.HTTPStatusError as e:
            logger.exception(
                "Error getting RAG response: status=%s url=%s body=%s",
                e.response.status_code,
                e.request.url,
                e.response.text[:200],
            )
        except (httpx.HTTPError, AttributeError, TypeError, ValueError):
            logger.exception("Error getting RAG response")
        else:
            logger.info("RAG response received with %d matches", len(result.matches))
            return result

        return RAGResult(
            answer=FAILED_RAG_ANSWER,
            context=FAILED_RAG_CONTEXT,
            degraded=True,
        )

    def close(self) -> None:
        if self.http is not None:
            self.http.close()

    def __enter__(self) -> "EmbeddingClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
