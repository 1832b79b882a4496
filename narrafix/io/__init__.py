"""Input/output components for Narrafix.

This package contains the host message-store interface and chat-file storage
used by the formatting pipeline.
"""

from .chat_store import InMemoryMessageStore, JsonlChatStore, MessageStore

__all__ = ["InMemoryMessageStore", "JsonlChatStore", "MessageStore"]
