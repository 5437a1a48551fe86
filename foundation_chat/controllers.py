"""Controllers mediating every mutation of the session collection.

``SessionListController`` owns the in-memory collection and the selection
pointer; ``ConversationController`` runs the prompt/response lifecycle against
the selected session. Both persist the full collection after each mutation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable, Sequence
from enum import Enum

from .exceptions import BusyError, NoSessionSelectedError
from .inference import InferenceService
from .models import ChatMessage, ChatSession, Sender
from .store import SessionStore

logger = logging.getLogger("foundation_chat.controllers")

ERROR_PREFIX = "Error: "


class SessionListController:
    """Create, select, delete, and clear sessions; newest first."""

    def __init__(self, store: SessionStore):
        self.store = store
        self._sessions: list[ChatSession] = []
        self._selected_id: uuid.UUID | None = None

    @property
    def sessions(self) -> Sequence[ChatSession]:
        return tuple(self._sessions)

    @property
    def selected_id(self) -> uuid.UUID | None:
        return self._selected_id

    @property
    def selected_session(self) -> ChatSession | None:
        """Resolve the selection pointer; None when nothing (or an unknown id) is selected."""
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: uuid.UUID) -> ChatSession | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def index_of(self, session_id: uuid.UUID) -> int | None:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                return index
        return None

    def _select_first(self) -> None:
        self._selected_id = self._sessions[0].id if self._sessions else None

    def persist(self) -> bool:
        return self.store.save(self._sessions)

    def load(self) -> Sequence[ChatSession]:
        self._sessions = self.store.load()
        self._select_first()
        return self.sessions

    def select(self, session_id: uuid.UUID | None) -> ChatSession | None:
        """Point the selection at ``session_id``; unknown ids resolve to no session."""
        self._selected_id = session_id
        self.persist()
        session = self.selected_session
        if session_id is not None and session is None:
            logger.info(
                "[FoundationChat Sessions] Selected id %s is not in the collection.", session_id
            )
        return session

    def create_session(self) -> ChatSession:
        session = self.store.new_session()
        self._sessions.insert(0, session)
        self._selected_id = session.id
        self.persist()
        return session

    def delete_sessions(self, indices: Iterable[int]) -> list[ChatSession]:
        """Remove sessions at the given positions. Out-of-range positions are ignored."""
        positions = sorted({i for i in indices if 0 <= i < len(self._sessions)}, reverse=True)
        if not positions:
            return []
        removed = [self._sessions.pop(i) for i in positions]
        removed.reverse()
        self._select_first()
        self.persist()
        return removed

    def clear_all(self) -> None:
        self._sessions = []
        self.persist()
        self._selected_id = None

    def create_quick_search_session(self, text: str) -> ChatSession | None:
        """Start a session seeded with one assistant message. Blank text is a no-op."""
        trimmed = text.strip()
        if not trimmed:
            return None
        seed = ChatMessage(sender=Sender.AI, text=trimmed)
        session = self.store.new_session(messages=[seed])
        self._sessions.insert(0, session)
        self._selected_id = session.id
        self.persist()
        return session


class RequestState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"


def describe_error(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ConversationController:
    """Sends prompts for the selected session and records the replies.

    The user message is appended and persisted before the service is called;
    the reply (or an ``"Error: ..."`` entry) is appended once the call resolves.
    Only one request may be outstanding; a second ``submit`` raises BusyError.
    """

    def __init__(self, sessions: SessionListController, service: InferenceService):
        self.sessions = sessions
        self.service = service
        self.state = RequestState.IDLE
        self.draft = ""
        self.last_error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self.state is not RequestState.IDLE

    def _begin(self, prompt_text: str | None) -> tuple[uuid.UUID, str] | None:
        raw = self.draft if prompt_text is None else prompt_text
        trimmed = raw.strip()
        if not trimmed:
            return None
        if self.busy:
            raise BusyError("A response is still pending for this conversation.")

        session = self.sessions.selected_session
        if session is None:
            raise NoSessionSelectedError("Select or create a chat before sending a prompt.")

        self.state = RequestState.SENDING
        try:
            session.append(ChatMessage(sender=Sender.USER, text=trimmed))
            self.sessions.persist()
        except BaseException:
            self.state = RequestState.IDLE
            raise
        self.draft = ""
        return session.id, trimmed

    async def _complete(self, session_id: uuid.UUID, prompt: str) -> ChatMessage:
        self.state = RequestState.AWAITING_RESPONSE
        try:
            try:
                result = await self.service.respond(prompt)
                reply = ChatMessage(sender=Sender.AI, text=result)
                self.last_error = None
            except Exception as e:
                logger.warning(f"[FoundationChat Conversation] Inference failed: {e}")
                self.last_error = describe_error(e)
                reply = ChatMessage(sender=Sender.AI, text=ERROR_PREFIX + self.last_error)

            session = self.sessions.get(session_id)
            if session is None:
                logger.warning(
                    "[FoundationChat Conversation] Session %s was deleted before its reply "
                    "arrived; dropping reply.",
                    session_id,
                )
                return reply
            session.append(reply)
            self.sessions.persist()
            return reply
        finally:
            self.state = RequestState.IDLE

    async def submit(self, prompt_text: str | None = None) -> ChatMessage | None:
        """Send ``prompt_text`` (or the current draft). Returns the assistant message."""
        begun = self._begin(prompt_text)
        if begun is None:
            return None
        return await self._complete(*begun)

    def submit_nowait(self, prompt_text: str | None = None) -> asyncio.Task | None:
        """Append the user message now and finish the request in a background task."""
        loop = asyncio.get_running_loop()
        begun = self._begin(prompt_text)
        if begun is None:
            return None
        self._task = loop.create_task(self._complete(*begun))
        return self._task
