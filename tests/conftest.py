"""Shared fixtures and fakes for the Foundation Chat test suite."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from foundation_chat.controllers import SessionListController
from foundation_chat.storage import MemorySlot
from foundation_chat.store import SessionStore


class FakeInferenceService:
    """Scriptable inference service.

    Replies with ``reply`` (or raises ``error``). When ``gate`` is set the call
    blocks until the test releases it, so in-flight state can be inspected.
    """

    def __init__(self, reply="Hi there!", error=None, gate=False):
        self.reply = reply
        self.error = error
        self.prompts = []
        self.gate = asyncio.Event() if gate else None
        self.on_call = None

    async def respond(self, prompt):
        self.prompts.append(prompt)
        if self.on_call is not None:
            self.on_call(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class BrokenSlot:
    """Slot whose writes always fail; reads return ``data``."""

    key = "chat_sessions"

    def __init__(self, data=None):
        self.data = data

    def read(self):
        return self.data

    def write(self, data):
        raise OSError("disk full")


def make_mock_model(available=True, reason="Apple Intelligence is not enabled"):
    """Create a mock SystemLanguageModel."""
    model = MagicMock()
    model.is_available.return_value = (available, None if available else reason)
    return model


def make_mock_fm(reply="model says hi", available=True):
    """Create a mock ``apple_fm_sdk`` module with one model and one session."""
    fm = MagicMock()
    fm.SystemLanguageModel.return_value = make_mock_model(available=available)
    session = MagicMock()
    session.respond = AsyncMock(return_value=reply)
    fm.LanguageModelSession.return_value = session
    return fm


@pytest.fixture
def slot():
    return MemorySlot()


@pytest.fixture
def store(slot):
    return SessionStore(slot)


@pytest.fixture
def sessions(store):
    controller = SessionListController(store)
    controller.load()
    return controller


@pytest.fixture
def service():
    return FakeInferenceService()
