"""Gating heuristics deciding whether a message gets semantic enhancement."""

import re
from collections.abc import Iterable

DEFAULT_TRIVIAL_PATTERNS: tuple[str, ...] = (
    r"hi+",
    r"hello+",
    r"hey+",
    r"yo+",
    r"sup+",
    r"how are you\??",
    r"what's up\??",
    r"ok+",
    r"okay+",
    r"test+",
    r"ping",
)

DEFAULT_QUESTION_INDICATORS: tuple[str, ...] = (
    "?",
    "what",
    "how",
    "why",
    "when",
    "where",
    "who",
    "which",
    "can you",
    "could you",
    "tell me",
    "explain",
    "describe",
    "find",
    "search",
    "help me with",
)

DEFAULT_MIN_SEARCH_LENGTH = 10

# Trailing "!" and "." do not change what a filler means ("HELLO!!", "ok.").
_TRAILING_NOISE = re.compile(r"[!.\s]+$")


class MessageClassifier:
    """Classifies inbound messages as trivial and/or worth a semantic search.

    Both keyword lists are configuration; the defaults mirror the fillers
    and question words seen in chat traffic.
    """

    def __init__(
        self,
        trivial_patterns: Iterable[str] = DEFAULT_TRIVIAL_PATTERNS,
        question_indicators: Iterable[str] = DEFAULT_QUESTION_INDICATORS,
        min_search_length: int = DEFAULT_MIN_SEARCH_LENGTH,
    ) -> None:
        self.trivial_patterns = tuple(
            re.compile(rf"^(?:{pattern})$", re.IGNORECASE)
            for pattern in trivial_patterns
        )
        self.question_indicators = tuple(
            indicator.lower() for indicator in question_indicators
        )
        self.min_search_length = min_search_length

    def is_trivial(self, content: str) -> bool:
        """Check whether the whole message is a greeting-like filler.

        Returns:
            True if the trimmed, lower-cased message matches a trivial pattern.
        """
        trimmed = content.strip().lower()
        candidates = {trimmed, _TRAILING_NOISE.sub("", trimmed)}
        return any(
            pattern.match(candidate)
            for candidate in candidates
            for pattern in self.trivial_patterns
        )

    def should_use_semantic_search(self, content: str) -> bool:
        """Check whether RAG enhancement is worth attempting for a message.

        Returns:
            True for non-trivial messages of at least ``min_search_length``
            characters that contain a question indicator.
        """
        if len(content.strip()) < self.min_search_length:
            return False
        if self.is_trivial(content):
            return False

        lowered = content.lower()
        return any(indicator in lowered for indicator in self.question_indicators)


default_classifier = MessageClassifier()


def is_trivial(content: str) -> bool:
    return default_classifier.is_trivial(content)


def should_use_semantic_search(content: str) -> bool:
    return default_classifier.should_use_semantic_search(content)
