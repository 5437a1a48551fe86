"""Transcript export to JSONL and Markdown."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path

from .models import ChatSession, Sender

EXPORT_FORMATS = ("jsonl", "md")


def utc_now_iso() -> str:
    """Return a stable UTC timestamp string."""
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def slugify_filename(value: str) -> str:
    """Convert title to a filesystem-safe stem."""
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "chat-export"


def default_export_path(session: ChatSession, fmt: str, directory: Path | None = None) -> Path:
    suffix = ".md" if fmt == "md" else ".jsonl"
    return (directory or Path.cwd()) / f"{slugify_filename(session.title)}{suffix}"


def export_jsonl(session: ChatSession, target: Path) -> Path:
    """Export chat to JSONL: one metadata line, then one line per message."""
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        handle.write(
            json.dumps(
                {
                    "type": "chat_metadata",
                    "chat_id": str(session.id),
                    "title": session.title,
                    "exported_at": utc_now_iso(),
                    "message_count": len(session.messages),
                },
                ensure_ascii=False,
            )
            + "\n"
        )
        for message in session.messages:
            record = {"type": "message", **message.to_dict()}
            handle.write(json.dumps(record, ensure_ascii=False) + "\n")
    return target


def export_markdown(session: ChatSession, target: Path) -> Path:
    """Export chat to Markdown transcript."""
    target.parent.mkdir(parents=True, exist_ok=True)

    lines = [f"# {session.title}", "", f"Exported: {utc_now_iso()}", ""]
    for message in session.messages:
        role = "You" if message.sender is Sender.USER else "Assistant"
        lines.append(f"## {role}")
        lines.append("")
        lines.append(message.text)
        lines.append("")

    target.write_text("\n".join(lines), encoding="utf-8")
    return target


def export_session(session: ChatSession, target: Path, fmt: str | None = None) -> Path:
    """Export by explicit ``fmt`` or by the target's suffix, defaulting to JSONL."""
    if fmt is None:
        fmt = "md" if target.suffix.lower() == ".md" else "jsonl"
    if fmt not in EXPORT_FORMATS:
        raise ValueError(f"fmt must be one of {', '.join(EXPORT_FORMATS)}; got '{fmt}'")
    if fmt == "md":
        if target.suffix.lower() != ".md":
            target = target.with_suffix(".md")
        return export_markdown(session, target)
    if target.suffix.lower() != ".jsonl":
        target = target.with_suffix(".jsonl")
    return export_jsonl(session, target)
