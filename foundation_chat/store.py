"""Session store: load/save the whole session collection through one storage slot."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence

from .exceptions import SessionDecodeError, SessionPersistError
from .models import TITLE_MAX_LENGTH, ChatSession
from .storage import StorageSlot

logger = logging.getLogger("foundation_chat.store")


def serialize_sessions(sessions: Sequence[ChatSession]) -> bytes:
    """Encode sessions as a UTF-8 JSON array."""
    payload = [session.to_dict() for session in sessions]
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def deserialize_sessions(data: bytes | str) -> list[ChatSession]:
    """Decode a JSON array of sessions. Raises :class:`SessionDecodeError` on any mismatch."""
    try:
        parsed = json.loads(data)
    except (ValueError, RecursionError) as exc:
        raise SessionDecodeError(f"stored sessions are not valid JSON: {exc}") from exc
    if not isinstance(parsed, list):
        raise SessionDecodeError(
            f"stored sessions must be a JSON array; got {type(parsed).__name__}"
        )
    return [ChatSession.from_dict(item) for item in parsed]


class SessionStore:
    """Persists the full session collection as a unit.

    ``load`` never fails: absent, corrupt, or empty data yields a single fresh
    session. ``save`` is best effort by default; failures are logged and the
    previously persisted value stays in place. Pass ``strict=True`` to get a
    :class:`SessionPersistError` instead.
    """

    def __init__(
        self,
        slot: StorageSlot,
        *,
        strict: bool = False,
        title_max_length: int = TITLE_MAX_LENGTH,
    ) -> None:
        self.slot = slot
        self.strict = strict
        self.title_max_length = title_max_length
        self.save_count = 0

    def new_session(self, **kwargs) -> ChatSession:
        kwargs.setdefault("title_max_length", self.title_max_length)
        return ChatSession(**kwargs)

    def load(self) -> list[ChatSession]:
        try:
            raw = self.slot.read()
        except Exception as e:
            logger.warning(f"[FoundationChat Store] Could not read {self.slot!r}: {e}")
            raw = None

        if not raw:
            logger.info("[FoundationChat Store] No stored sessions; starting with a new chat.")
            return [self.new_session()]

        try:
            sessions = deserialize_sessions(raw)
        except SessionDecodeError as e:
            logger.warning(
                f"[FoundationChat Store] Stored sessions unreadable ({e}); starting with a new chat."
            )
            return [self.new_session()]

        if not sessions:
            return [self.new_session()]

        logger.debug("[FoundationChat Store] Loaded %d session(s).", len(sessions))
        return sessions

    def save(self, sessions: Sequence[ChatSession]) -> bool:
        """Overwrite the slot with ``sessions``. Returns False if a failure was swallowed."""
        try:
            self.slot.write(serialize_sessions(sessions))
        except Exception as e:
            if self.strict:
                raise SessionPersistError(f"Failed to save sessions: {e}") from e
            logger.warning(
                "[FoundationChat Store] Save failed; keeping previously stored sessions.",
                exc_info=True,
            )
            return False
        self.save_count += 1
        return True
