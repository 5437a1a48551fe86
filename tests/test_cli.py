"""
Tests for the foundation-chat CLI.

Every invocation runs with ``--offline`` (echo service) against a temporary
data directory, so no model or real user data is touched.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from foundation_chat.cli import cli
from foundation_chat.exceptions import AppleFMSetupError


@pytest.fixture
def runner(monkeypatch):
    for name in (
        "FOUNDATION_CHAT_DATA_DIR",
        "FOUNDATION_CHAT_BACKEND",
        "FOUNDATION_CHAT_SLOT_KEY",
        "FOUNDATION_CHAT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


@pytest.fixture
def invoke(runner, tmp_path):
    def _invoke(*args, input=None, backend="file"):
        return runner.invoke(
            cli,
            ["--data-dir", str(tmp_path), "--backend", backend, "--offline", *args],
            input=input,
        )

    return _invoke


def _stored(tmp_path):
    return json.loads((tmp_path / "chat_sessions.json").read_text(encoding="utf-8"))


class TestSessionCommands:
    def test_list_on_fresh_storage_shows_default_chat(self, invoke):
        result = invoke("list")
        assert result.exit_code == 0, result.output
        assert "New Chat" in result.output
        assert result.output.startswith("*")

    def test_new_then_list(self, invoke, tmp_path):
        assert invoke("new").exit_code == 0
        stored = _stored(tmp_path)
        assert [s["title"] for s in stored] == ["New Chat", "New Chat"]
        assert invoke("new").exit_code == 0
        assert len(_stored(tmp_path)) == 3

    def test_quick_creates_seeded_chat(self, invoke, tmp_path):
        result = invoke("quick", "weather", "today")
        assert result.exit_code == 0, result.output
        stored = _stored(tmp_path)
        assert stored[0]["title"] == "weather today"
        assert stored[0]["messages"][0]["sender"] == "ai"

    def test_quick_blank_is_noop(self, invoke, tmp_path):
        result = invoke("quick", "   ")
        assert result.exit_code == 0
        assert "Nothing to search for." in result.output
        assert not (tmp_path / "chat_sessions.json").exists()

    def test_delete(self, invoke, tmp_path):
        invoke("quick", "first")
        invoke("quick", "second")
        result = invoke("delete", "0")
        assert result.exit_code == 0, result.output
        assert "Deleted second" in result.output
        assert [s["title"] for s in _stored(tmp_path)] == ["first", "New Chat"]

    def test_delete_out_of_range(self, invoke):
        result = invoke("delete", "7")
        assert result.exit_code == 0
        assert "Nothing deleted" in result.output

    def test_clear_requires_confirmation(self, invoke, tmp_path):
        invoke("quick", "keep me")
        declined = invoke("clear", input="n\n")
        assert declined.exit_code == 1
        assert len(_stored(tmp_path)) == 2

        accepted = invoke("clear", input="y\n")
        assert accepted.exit_code == 0
        assert _stored(tmp_path) == []

    def test_clear_yes(self, invoke, tmp_path):
        result = invoke("clear", "--yes")
        assert result.exit_code == 0
        assert _stored(tmp_path) == []

    def test_show_empty_chat(self, invoke):
        result = invoke("show")
        assert result.exit_code == 0
        assert "AI responses appear here." in result.output

    def test_numeric_id_prefix_beyond_positions(self, invoke, tmp_path):
        chats = [
            {"id": "12345678-0000-4000-8000-000000000000", "title": "digits", "messages": []},
            {"id": "abcdef00-0000-4000-8000-000000000000", "title": "letters", "messages": []},
        ]
        (tmp_path / "chat_sessions.json").write_text(json.dumps(chats), encoding="utf-8")

        result = invoke("show", "-s", "12345678")
        assert result.exit_code == 0, result.output
        assert "digits" in result.output

        assert "letters" in invoke("show", "-s", "1").output

        missing = invoke("show", "-s", "99")
        assert missing.exit_code == 2
        assert "no chat at position 99" in missing.output

    def test_show_unknown_session(self, invoke):
        result = invoke("show", "-s", "ffffffff")
        assert result.exit_code == 2
        assert "no chat matches" in result.output


class TestConversationCommands:
    def test_ask_appends_and_prints_reply(self, invoke, tmp_path):
        result = invoke("ask", "hello", "there")
        assert result.exit_code == 0, result.output
        assert "Echo: hello there" in result.output

        messages = _stored(tmp_path)[0]["messages"]
        assert [(m["sender"], m["text"]) for m in messages] == [
            ("user", "hello there"),
            ("ai", "Echo: hello there"),
        ]

        shown = invoke("show")
        assert "You" in shown.output and "Echo: hello there" in shown.output

    def test_ask_targets_session_option(self, invoke, tmp_path):
        invoke("quick", "older")
        invoke("new")
        result = invoke("ask", "-s", "1", "ping")
        assert result.exit_code == 0, result.output
        stored = _stored(tmp_path)
        assert stored[0]["messages"] == []
        assert [m["text"] for m in stored[1]["messages"]] == ["older", "ping", "Echo: ping"]

    def test_ask_after_clear_starts_fresh_chat(self, invoke, tmp_path):
        invoke("quick", "old")
        invoke("clear", "--yes")
        result = invoke("ask", "hello")
        assert result.exit_code == 0, result.output
        stored = _stored(tmp_path)
        assert len(stored) == 1
        assert stored[0]["title"] == "New Chat"
        assert [m["text"] for m in stored[0]["messages"]] == ["hello", "Echo: hello"]

    def test_ask_blank_prompt(self, invoke, tmp_path):
        result = invoke("ask", "   ")
        assert result.exit_code == 0
        assert "Type a message first." in result.output
        assert not (tmp_path / "chat_sessions.json").exists()

    def test_ask_model_error_is_recorded(self, runner, tmp_path):
        with patch(
            "foundation_chat.inference.require_apple_fm",
            side_effect=AppleFMSetupError("SDK missing"),
        ):
            result = runner.invoke(cli, ["--data-dir", str(tmp_path), "ask", "hi"])
        assert result.exit_code == 1
        assert "Error: SDK missing" in result.output
        assert _stored(tmp_path)[0]["messages"][-1]["text"] == "Error: SDK missing"

    def test_chat_loop(self, invoke, tmp_path):
        result = invoke("chat", input="hello\n/help\n/new\n/list\n/quit\n")
        assert result.exit_code == 0, result.output
        assert "Echo: hello" in result.output
        assert "Slash Commands" in result.output

        stored = _stored(tmp_path)
        assert len(stored) == 2
        assert stored[0]["messages"] == []
        assert [m["text"] for m in stored[1]["messages"]] == ["hello", "Echo: hello"]

    def test_chat_loop_select_and_unknown_command(self, invoke, tmp_path):
        invoke("quick", "older")
        invoke("new")
        result = invoke("chat", input="/select 1\n/bogus\nping\n/quit\n")
        assert result.exit_code == 0, result.output
        assert "Unknown command: /bogus" in result.output
        assert [m["text"] for m in _stored(tmp_path)[1]["messages"]] == [
            "older",
            "ping",
            "Echo: ping",
        ]


class TestExportAndDoctor:
    def test_export_markdown(self, invoke, tmp_path):
        invoke("ask", "hello")
        target = tmp_path / "out.md"
        result = invoke("export", "-o", str(target))
        assert result.exit_code == 0, result.output
        assert "## Assistant" in target.read_text(encoding="utf-8")

    def test_export_jsonl_default_name(self, invoke, runner, tmp_path):
        invoke("quick", "Trip ideas")
        with runner.isolated_filesystem(temp_dir=tmp_path) as cwd:
            result = invoke("export", "--format", "jsonl")
            assert result.exit_code == 0, result.output
            assert (tmp_path / cwd / "trip-ideas.jsonl").is_file()

    def test_doctor_reports_unavailable_model(self, invoke):
        with patch("foundation_chat.cli.model_status", return_value=(False, "no SDK")):
            result = invoke("doctor")
        assert result.exit_code == 1
        assert "unavailable (no SDK)" in result.output

    def test_doctor_available(self, invoke):
        with patch("foundation_chat.cli.model_status", return_value=(True, "")):
            result = invoke("doctor")
        assert result.exit_code == 0
        assert "available" in result.output


class TestBackends:
    def test_sqlite_backend_persists(self, invoke, tmp_path):
        assert invoke("quick", "stored in sqlite", backend="sqlite").exit_code == 0
        result = invoke("list", backend="sqlite")
        assert "stored in sqlite" in result.output
        assert (tmp_path / "chat_history.sqlite3").is_file()

    def test_damaged_sqlite_file_falls_back_to_new_chat(self, invoke, tmp_path):
        (tmp_path / "chat_history.sqlite3").write_bytes(b"this is not a database\n" * 100)
        result = invoke("list", backend="sqlite")
        assert result.exit_code == 0, result.output
        assert "New Chat" in result.output

    def test_invalid_env_backend(self, runner, monkeypatch):
        monkeypatch.setenv("FOUNDATION_CHAT_BACKEND", "postgres")
        result = runner.invoke(cli, ["list"])
        assert result.exit_code == 2
        assert "backend must be one of" in result.output
