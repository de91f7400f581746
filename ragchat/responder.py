"""Deterministic keyword responder used when the chat model is unavailable."""

import re

GREETING_REPLY = "Hello! How can I assist you today?"
HELP_REPLY = "I'm here to help! What specific information are you looking for?"
FAREWELL_REPLY = "Goodbye! Feel free to return if you have more questions."
THANKS_REPLY = "You're welcome! Is there anything else I can help with?"
MORE_DETAIL_REPLY = "Could you please provide more details so I can better assist you?"
ACKNOWLEDGE_REPLY = "I received your message."

GREETING_WORDS = frozenset({"hello", "hi", "hey"})
FAREWELL_WORDS = frozenset({"bye", "goodbye"})
THANKS_WORDS = frozenset({"thanks"})
SHORT_MESSAGE_LENGTH = 10

_WORD = re.compile(r"[a-z']+")


def mock_response(message: str) -> str:
    """Pick a canned reply from keywords in the message.

    Pure function: the same input always yields the same reply.

    Returns:
        One of the canned replies above.
    """
    lowered = message.lower()
    words = set(_WORD.findall(lowered))

    if words & GREETING_WORDS:
        return GREETING_REPLY
    if "help" in words:
        return HELP_REPLY
    if words & FAREWELL_WORDS:
        return FAREWELL_REPLY
    if words & THANKS_WORDS or "thank you" in lowered:
        return THANKS_REPLY
    if len(lowered) < SHORT_MESSAGE_LENGTH:
        return MORE_DETAIL_REPLY
    return ACKNOWLEDGE_REPLY
