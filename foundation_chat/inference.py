"""
Inference services: anything that turns a prompt into a reply, asynchronously.

``FoundationModelService`` talks to the on-device Apple Foundation Model. The
SDK is imported lazily so the rest of the package works without it.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol, runtime_checkable

from .config import DEFAULT_INSTRUCTIONS
from .exceptions import AppleFMSetupError, ensure_model_available, require_apple_fm

logger = logging.getLogger("foundation_chat.inference")


@runtime_checkable
class InferenceService(Protocol):
    """Accepts a prompt, eventually returns a response or raises."""

    async def respond(self, prompt: str) -> str: ...


def create_model() -> Any:
    """Return a new ``SystemLanguageModel``."""
    fm = require_apple_fm()
    return fm.SystemLanguageModel()


def create_session(instructions: str | None = None, model: Any | None = None) -> Any:
    """Return a new ``LanguageModelSession`` bound to ``model``."""
    fm = require_apple_fm()
    if model is None:
        model = fm.SystemLanguageModel()
    if instructions:
        return fm.LanguageModelSession(model=model, instructions=instructions)
    return fm.LanguageModelSession(model=model)


def model_status() -> tuple[bool, str]:
    """Probe the on-device model. Returns ``(available, reason)``."""
    try:
        model = create_model()
    except AppleFMSetupError as e:
        return False, str(e)
    is_available, reason = model.is_available()
    return bool(is_available), "" if is_available else str(reason)


class FoundationModelService:
    """Replies from the on-device Apple Foundation Model.

    One ``LanguageModelSession`` is created on first use and kept for the
    lifetime of the service, so consecutive prompts share conversation context.
    """

    def __init__(self, instructions: str | None = DEFAULT_INSTRUCTIONS, debug_timing: bool = False):
        self.instructions = instructions
        self.debug_timing = debug_timing
        self._model: Any | None = None
        self._session: Any | None = None

    def _ensure_session(self) -> Any:
        if self._session is None:
            model = create_model()
            ensure_model_available(model, context="chat")
            self._model = model
            self._session = create_session(instructions=self.instructions, model=model)
        return self._session

    def reset(self) -> None:
        """Forget conversation context; the next prompt starts a fresh model session."""
        self._session = None

    async def respond(self, prompt: str) -> str:
        session = self._ensure_session()
        start_time = time.perf_counter()
        result = await session.respond(prompt)
        if self.debug_timing:
            elapsed = time.perf_counter() - start_time
            logger.info(
                f"[FoundationChat Inference] Response in {elapsed:.3f}s. "
                f"Prompt length: {len(prompt)} chars."
            )
        return str(result)


class EchoService:
    """Offline stand-in that repeats the prompt back. Used by ``--offline``."""

    def __init__(self, prefix: str = "Echo: "):
        self.prefix = prefix
        self.prompts: list[str] = []

    async def respond(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return f"{self.prefix}{prompt}"
