# relaychat_web/client/__init__.py
"""
Client-side counterpart of the relay: consumes the `/api/chat` event stream
and reveals answers with a typewriter effect.
"""
from .consumer import ChatClient, StreamConsumer, compose_result_content
from .state import ChatMessage, ChatState
from .typewriter import TypewriterReveal

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatState",
    "StreamConsumer",
    "TypewriterReveal",
    "compose_result_content",
]
