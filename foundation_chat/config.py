"""Runtime configuration resolved from ``FOUNDATION_CHAT_*`` environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .models import TITLE_MAX_LENGTH

logger = logging.getLogger("foundation_chat.config")

ENV_PREFIX = "FOUNDATION_CHAT_"
DEFAULT_DATA_DIR = Path.home() / ".foundation_chat"
DEFAULT_SLOT_KEY = "chat_sessions"
VALID_BACKENDS = ("file", "sqlite", "memory")
DEFAULT_INSTRUCTIONS = (
    "You are a helpful on-device assistant running on Apple Foundation Models. "
    "Answer concisely and say so when you are unsure."
)


def resolve_log_level(level: str | int, fallback: int = logging.WARNING) -> int:
    """Turn ``"info"``, ``"10"`` or ``10`` into a logging level number."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        if level.isdigit():
            return int(level)
        resolved = logging.getLevelName(level.upper())
        if isinstance(resolved, int):
            return resolved
    logger.warning(
        "[FoundationChat Config] Unsupported log level '%s'; falling back to %s.",
        level,
        logging.getLevelName(fallback),
    )
    return fallback


@dataclass(frozen=True)
class ChatConfig:
    """Where sessions live and how the app talks to the model."""

    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    backend: str = "file"
    slot_key: str = DEFAULT_SLOT_KEY
    title_max_length: int = TITLE_MAX_LENGTH
    log_level: str = "WARNING"
    instructions: str = DEFAULT_INSTRUCTIONS

    def __post_init__(self) -> None:
        if self.backend not in VALID_BACKENDS:
            raise ValueError(
                f"backend must be one of {', '.join(VALID_BACKENDS)}; got '{self.backend}'"
            )
        if self.title_max_length <= 0:
            raise ValueError("title_max_length must be > 0")
        if not self.slot_key.strip():
            raise ValueError("slot_key must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ChatConfig:
        """Build a config from the environment, keeping defaults for unset values."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        data_dir = env.get(f"{ENV_PREFIX}DATA_DIR")
        if data_dir:
            values["data_dir"] = Path(data_dir).expanduser()
        backend = env.get(f"{ENV_PREFIX}BACKEND")
        if backend:
            values["backend"] = backend.strip().lower()
        slot_key = env.get(f"{ENV_PREFIX}SLOT_KEY")
        if slot_key:
            values["slot_key"] = slot_key
        title_max = env.get(f"{ENV_PREFIX}TITLE_MAX_LENGTH")
        if title_max:
            try:
                values["title_max_length"] = int(title_max)
            except ValueError:
                logger.warning(
                    "[FoundationChat Config] Ignoring non-integer %sTITLE_MAX_LENGTH=%r.",
                    ENV_PREFIX,
                    title_max,
                )
        log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level
        instructions = env.get(f"{ENV_PREFIX}INSTRUCTIONS")
        if instructions:
            values["instructions"] = instructions

        return cls(**values)  # type: ignore[arg-type]

    def with_overrides(self, **overrides: object) -> ChatConfig:
        """Return a copy with every non-None override applied."""
        applied = {key: value for key, value in overrides.items() if value is not None}
        if "data_dir" in applied:
            applied["data_dir"] = Path(str(applied["data_dir"])).expanduser()
        return replace(self, **applied)  # type: ignore[arg-type]
