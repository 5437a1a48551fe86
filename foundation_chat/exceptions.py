"""Exception types shared across Foundation Chat."""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import Any

_INSTALL_HINT = (
    "Install the Apple Foundation Models SDK (pip install 'foundation-chat[apple]') "
    "on macOS 26+ with Apple Intelligence enabled, or run with --offline."
)


class FoundationChatError(Exception):
    """Base class for every error raised by the chat core."""


class SessionDecodeError(FoundationChatError):
    """Persisted session data does not match the expected shape."""


class SessionPersistError(FoundationChatError):
    """Writing the session collection to its storage slot failed."""


class BusyError(FoundationChatError):
    """A prompt was submitted while another request is still outstanding."""


class NoSessionSelectedError(FoundationChatError):
    """A prompt was submitted but no session is selected."""


class AppleFMSetupError(FoundationChatError, RuntimeError):
    """The Apple Foundation Models SDK is missing or the model is unavailable."""


def require_apple_fm() -> ModuleType:
    """Import ``apple_fm_sdk`` or raise :class:`AppleFMSetupError` with guidance."""
    try:
        return importlib.import_module("apple_fm_sdk")
    except ImportError:
        raise AppleFMSetupError(
            f"[FoundationChat] 'apple-fm-sdk' is not installed. {_INSTALL_HINT}"
        ) from None


def ensure_model_available(model: Any, *, context: str = "inference") -> None:
    """Raise :class:`AppleFMSetupError` if ``model.is_available()`` reports False."""
    is_available, reason = model.is_available()
    if not is_available:
        raise AppleFMSetupError(
            f"[FoundationChat] Foundation Model is not available for {context}: {reason}"
        )
