"""Tests for foundation_chat.export."""

import json

import pytest

from foundation_chat.export import (
    default_export_path,
    export_jsonl,
    export_markdown,
    export_session,
    slugify_filename,
)
from foundation_chat.models import ChatMessage, ChatSession, Sender


@pytest.fixture
def session():
    return ChatSession(
        messages=[
            ChatMessage(Sender.USER, "Plan a trip"),
            ChatMessage(Sender.AI, "Sure, where to?"),
        ]
    )


def test_slugify_filename():
    assert slugify_filename("  Plan a Trip! ") == "plan-a-trip"
    assert slugify_filename("☕") == "chat-export"


def test_jsonl_export(tmp_path, session):
    target = export_jsonl(session, tmp_path / "out" / "chat.jsonl")
    lines = [json.loads(line) for line in target.read_text(encoding="utf-8").splitlines()]
    assert lines[0]["type"] == "chat_metadata"
    assert lines[0]["chat_id"] == str(session.id)
    assert lines[0]["message_count"] == 2
    assert [(r["sender"], r["text"]) for r in lines[1:]] == [
        ("user", "Plan a trip"),
        ("ai", "Sure, where to?"),
    ]


def test_markdown_export(tmp_path, session):
    text = export_markdown(session, tmp_path / "chat.md").read_text(encoding="utf-8")
    assert text.startswith("# Plan a trip\n")
    assert "## You\n\nPlan a trip" in text
    assert "## Assistant\n\nSure, where to?" in text


def test_export_session_infers_format_from_suffix(tmp_path, session):
    assert export_session(session, tmp_path / "a.md").suffix == ".md"
    assert export_session(session, tmp_path / "b.txt").suffix == ".jsonl"
    assert export_session(session, tmp_path / "c.txt", "md").name == "c.md"


def test_export_session_rejects_unknown_format(tmp_path, session):
    with pytest.raises(ValueError):
        export_session(session, tmp_path / "a", "pdf")


def test_default_export_path(tmp_path, session):
    assert default_export_path(session, "md", tmp_path) == tmp_path / "plan-a-trip.md"
    assert default_export_path(session, "jsonl", tmp_path).name == "plan-a-trip.jsonl"
