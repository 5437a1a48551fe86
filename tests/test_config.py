"""Tests for foundation_chat.config."""

import logging
from pathlib import Path

import pytest

from foundation_chat.config import DEFAULT_SLOT_KEY, ChatConfig, resolve_log_level


class TestChatConfig:
    def test_defaults(self):
        config = ChatConfig.from_env({})
        assert config.backend == "file"
        assert config.slot_key == DEFAULT_SLOT_KEY == "chat_sessions"
        assert config.title_max_length == 32
        assert config.data_dir.name == ".foundation_chat"

    def test_from_env(self, tmp_path):
        config = ChatConfig.from_env(
            {
                "FOUNDATION_CHAT_DATA_DIR": str(tmp_path),
                "FOUNDATION_CHAT_BACKEND": "SQLite",
                "FOUNDATION_CHAT_SLOT_KEY": "other",
                "FOUNDATION_CHAT_TITLE_MAX_LENGTH": "20",
                "FOUNDATION_CHAT_LOG_LEVEL": "debug",
                "FOUNDATION_CHAT_INSTRUCTIONS": "Talk like a pirate.",
            }
        )
        assert config.data_dir == tmp_path
        assert config.backend == "sqlite"
        assert config.slot_key == "other"
        assert config.title_max_length == 20
        assert config.log_level == "debug"
        assert config.instructions == "Talk like a pirate."

    def test_bad_title_length_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING, logger="foundation_chat.config"):
            config = ChatConfig.from_env({"FOUNDATION_CHAT_TITLE_MAX_LENGTH": "long"})
        assert config.title_max_length == 32
        assert "non-integer" in caplog.text

    def test_invalid_backend_rejected(self):
        with pytest.raises(ValueError, match="backend"):
            ChatConfig(backend="postgres")

    def test_invalid_title_length_rejected(self):
        with pytest.raises(ValueError):
            ChatConfig(title_max_length=0)

    def test_overrides_skip_none(self, tmp_path):
        base = ChatConfig(backend="sqlite")
        config = base.with_overrides(data_dir=str(tmp_path), backend=None, log_level="INFO")
        assert config.data_dir == Path(tmp_path)
        assert config.backend == "sqlite"
        assert config.log_level == "INFO"


class TestResolveLogLevel:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("info", logging.INFO), ("DEBUG", logging.DEBUG), ("30", 30), (logging.ERROR, 40)],
    )
    def test_known_levels(self, value, expected):
        assert resolve_log_level(value) == expected

    def test_unknown_level_falls_back(self, caplog):
        assert resolve_log_level("chatty") == logging.WARNING
        assert "Unsupported log level" in caplog.text
