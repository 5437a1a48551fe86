"""
Foundation Chat: an on-device chat core built on python-apple-fm-sdk.

Chat sessions are persisted locally as a single JSON blob; replies come from the
Apple Foundation Model running on the device, with zero cloud dependency.
The SDK is loaded lazily, so sessions can be browsed and exported without it.
"""

from .controllers import ConversationController, RequestState, SessionListController
from .exceptions import (
    AppleFMSetupError,
    BusyError,
    FoundationChatError,
    NoSessionSelectedError,
    SessionDecodeError,
    SessionPersistError,
)
from .inference import EchoService, FoundationModelService, InferenceService
from .models import ChatMessage, ChatSession, Sender
from .store import SessionStore, deserialize_sessions, serialize_sessions

__version__ = "0.1.0"

__all__ = [
    "AppleFMSetupError",
    "BusyError",
    "ChatMessage",
    "ChatSession",
    "ConversationController",
    "EchoService",
    "FoundationChatError",
    "FoundationModelService",
    "InferenceService",
    "NoSessionSelectedError",
    "RequestState",
    "Sender",
    "SessionDecodeError",
    "SessionListController",
    "SessionPersistError",
    "SessionStore",
    "deserialize_sessions",
    "serialize_sessions",
]
