"""
Foundation Chat CLI: manage chat sessions and talk to the on-device model.

Registered as `foundation-chat` console script via pyproject.toml.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path

import click

from .config import VALID_BACKENDS, ChatConfig, resolve_log_level
from .controllers import ConversationController, SessionListController
from .exceptions import FoundationChatError
from .export import EXPORT_FORMATS, default_export_path, export_session
from .inference import EchoService, FoundationModelService, InferenceService, model_status
from .models import ChatSession, Sender
from .storage import SqliteSlot, open_slot
from .store import SessionStore

logger = logging.getLogger("foundation_chat.cli")

NO_SELECTION_TEXT = "Select or create a chat."
EMPTY_TRANSCRIPT_TEXT = "AI responses appear here."
CLEAR_CONFIRMATION = (
    "Are you sure you want to clear all chat history? This action cannot be undone."
)

HELP_TEXT = """Slash Commands
/help                          Show command help
/new                           Start a new chat and switch to it
/list                          List chats (newest first)
/select <index|id>             Switch to another chat
/export [jsonl|md] [path]      Export the current chat
/quit                          Leave the chat loop
"""


class ChatContext:
    """Lazily wires config → slot → store → controllers for one CLI invocation."""

    def __init__(self, config: ChatConfig, offline: bool = False):
        self.config = config
        self.offline = offline
        self._sessions: SessionListController | None = None
        self._slot = None

    @property
    def sessions(self) -> SessionListController:
        if self._sessions is None:
            self._slot = open_slot(self.config)
            store = SessionStore(self._slot, title_max_length=self.config.title_max_length)
            self._sessions = SessionListController(store)
            self._sessions.load()
        return self._sessions

    def service(self) -> InferenceService:
        if self.offline:
            return EchoService()
        return FoundationModelService(instructions=self.config.instructions)

    def close(self) -> None:
        if isinstance(self._slot, SqliteSlot):
            self._slot.close()


class ChatGroup(click.Group):
    """Click group that reports FoundationChatError as a clean CLI failure."""

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except FoundationChatError as e:
            logger.debug("[FoundationChat CLI] Command failed.", exc_info=True)
            click.secho(f"Error: {e}", fg="red", err=True)
            raise SystemExit(1) from None


def _resolve_session(sessions: SessionListController, ref: str | None) -> ChatSession:
    """Resolve ``ref`` (position or id prefix) to a session; default is the selected one."""
    if ref is None:
        session = sessions.selected_session
        if session is None:
            raise click.ClickException(NO_SELECTION_TEXT)
        return session

    if ref.isdigit() and int(ref) < len(sessions):
        return sessions.sessions[int(ref)]

    # Out-of-range digits may still be an all-numeric id prefix.
    matches = [s for s in sessions.sessions if str(s.id).startswith(ref.lower())]
    if len(matches) != 1:
        if not matches and ref.isdigit():
            raise click.BadParameter(
                f"no chat at position {ref} or with id '{ref}'", param_hint="--session"
            )
        reason = "no chat" if not matches else "more than one chat"
        raise click.BadParameter(f"{reason} matches id '{ref}'", param_hint="--session")
    return matches[0]


def _select(sessions: SessionListController, ref: str | None) -> ChatSession:
    session = _resolve_session(sessions, ref)
    if session.id != sessions.selected_id:
        sessions.select(session.id)
    return session


def _print_session_table(sessions: SessionListController) -> None:
    if not len(sessions):
        click.secho("No chats yet. Run `foundation-chat new` to start one.", fg="yellow")
        return
    for index, session in enumerate(sessions.sessions):
        marker = "*" if session.id == sessions.selected_id else " "
        count = len(session.messages)
        click.echo(
            f"{marker} {index:>3}  {session.display_title:<36} "
            f"{count:>3} msg{'s' if count != 1 else ' '}  {str(session.id)[:8]}"
        )


def _print_transcript(session: ChatSession | None) -> None:
    if session is None:
        click.secho(NO_SELECTION_TEXT, fg="bright_black")
        return
    click.secho(f"\n{session.display_title}", fg="cyan", bold=True)
    click.secho("─" * min(60, max(12, len(session.display_title))), fg="cyan")
    if not session.messages:
        click.secho(EMPTY_TRANSCRIPT_TEXT, fg="bright_black")
        return
    for message in session.messages:
        _print_message_text(message.sender, message.text)


def _print_message_text(sender: Sender, text: str) -> None:
    if sender is Sender.USER:
        click.secho("You", fg="blue", bold=True)
    else:
        click.secho("Assistant", fg="green", bold=True)
    click.echo(f"{text}\n")


# ── Command group ─────────────────────────────────────────────────────────────


@click.group(cls=ChatGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="foundation-chat")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding stored chats. [env: FOUNDATION_CHAT_DATA_DIR]",
)
@click.option(
    "--backend",
    type=click.Choice(VALID_BACKENDS),
    default=None,
    help="Where chats are stored. [env: FOUNDATION_CHAT_BACKEND, default: file]",
)
@click.option(
    "--log-level",
    default=None,
    help="Logging level name or number. [env: FOUNDATION_CHAT_LOG_LEVEL]",
)
@click.option(
    "--offline",
    is_flag=True,
    help="Answer with a local echo service instead of the Foundation Model.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    data_dir: Path | None,
    backend: str | None,
    log_level: str | None,
    offline: bool,
) -> None:
    """Foundation Chat: on-device chat sessions backed by Apple Foundation Models."""
    try:
        config = ChatConfig.from_env().with_overrides(
            data_dir=data_dir, backend=backend, log_level=log_level
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from None

    logging.basicConfig(
        level=resolve_log_level(config.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    chat_ctx = ChatContext(config, offline=offline)
    ctx.obj = chat_ctx
    ctx.call_on_close(chat_ctx.close)


session_option = click.option(
    "-s",
    "--session",
    "session_ref",
    default=None,
    help="Chat position (from `list`) or id prefix. Defaults to the newest chat.",
)


# ── Session management ────────────────────────────────────────────────────────


@cli.command(name="list")
@click.pass_obj
def list_cmd(obj: ChatContext) -> None:
    """List chats, newest first."""
    _print_session_table(obj.sessions)


@cli.command()
@click.pass_obj
def new(obj: ChatContext) -> None:
    """Start a new empty chat."""
    session = obj.sessions.create_session()
    click.secho(f"Created {session.title} ({str(session.id)[:8]})", fg="green")


@cli.command()
@click.argument("indices", nargs=-1, type=int, required=True)
@click.pass_obj
def delete(obj: ChatContext, indices: tuple[int, ...]) -> None:
    """Delete chats by position (see `list`).

    \b
    Examples:
        foundation-chat delete 0
        foundation-chat delete 1 3
    """
    removed = obj.sessions.delete_sessions(indices)
    if not removed:
        click.secho("Nothing deleted: no chat at the given position(s).", fg="yellow")
        return
    for session in removed:
        click.echo(f"Deleted {session.display_title}")
    if not len(obj.sessions):
        click.secho("No chats left.", fg="yellow")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_obj
def clear(obj: ChatContext, yes: bool) -> None:
    """Clear all chat history."""
    if not yes:
        click.confirm(CLEAR_CONFIRMATION, abort=True)
    obj.sessions.clear_all()
    click.secho("All chat history cleared.", fg="green")


@cli.command()
@click.argument("text", nargs=-1, required=True)
@click.pass_obj
def quick(obj: ChatContext, text: tuple[str, ...]) -> None:
    """Start a chat seeded with TEXT as a quick search."""
    session = obj.sessions.create_quick_search_session(" ".join(text))
    if session is None:
        click.secho("Nothing to search for.", fg="yellow")
        return
    click.secho(f"Created {session.title} ({str(session.id)[:8]})", fg="green")


@cli.command()
@session_option
@click.pass_obj
def show(obj: ChatContext, session_ref: str | None) -> None:
    """Print a chat transcript."""
    sessions = obj.sessions
    if session_ref is None:
        _print_transcript(sessions.selected_session)
        return
    _print_transcript(_resolve_session(sessions, session_ref))


# ── Conversation ──────────────────────────────────────────────────────────────


@cli.command()
@click.argument("prompt", nargs=-1, required=True)
@session_option
@click.pass_obj
def ask(obj: ChatContext, prompt: tuple[str, ...], session_ref: str | None) -> None:
    """Send PROMPT to a chat and print the reply.

    \b
    Examples:
        foundation-chat ask "What is a haiku?"
        foundation-chat ask -s 2 "Shorter, please"
    """
    sessions = obj.sessions
    _select(sessions, session_ref)
    conversation = ConversationController(sessions, obj.service())
    reply = asyncio.run(conversation.submit(" ".join(prompt)))
    if reply is None:
        click.secho("Type a message first.", fg="yellow")
        return
    if conversation.last_error is not None:
        click.secho(reply.text, fg="red")
        raise SystemExit(1)
    click.echo(reply.text)


async def _read_line(prompt: str) -> str | None:
    """Read one line without blocking the event loop. None on EOF/abort."""
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            None, lambda: click.prompt(prompt, default="", show_default=False, prompt_suffix="> ")
        )
    except (click.Abort, EOFError):
        return None


async def _run_slash_command(
    raw_text: str, sessions: SessionListController, conversation: ConversationController
) -> bool:
    """Execute a slash command. Returns False when the loop should stop."""
    try:
        tokens = shlex.split(raw_text)
    except ValueError as exc:
        click.secho(f"Command parse error: {exc}", fg="red")
        return True

    command = tokens[0].lower() if tokens else ""
    args = tokens[1:]

    if command in {"/quit", "/exit"}:
        return False
    if command == "/help":
        click.echo(HELP_TEXT)
    elif command == "/new":
        sessions.create_session()
        _reset_service(conversation)
        _print_transcript(sessions.selected_session)
    elif command == "/list":
        _print_session_table(sessions)
    elif command == "/select":
        if not args:
            click.secho("Usage: /select <index|id>", fg="yellow")
            return True
        try:
            _select(sessions, args[0])
        except click.ClickException as exc:
            click.secho(exc.format_message(), fg="red")
            return True
        _reset_service(conversation)
        _print_transcript(sessions.selected_session)
    elif command == "/export":
        session = sessions.selected_session
        if session is None:
            click.secho("No active chat to export.", fg="yellow")
            return True
        fmt = "jsonl"
        destination: Path | None = None
        if args:
            first = args[0].lower()
            if first in EXPORT_FORMATS:
                fmt = first
                if len(args) > 1:
                    destination = Path(args[1]).expanduser()
            else:
                destination = Path(args[0]).expanduser()
        target = export_session(session, destination or default_export_path(session, fmt), fmt)
        click.secho(f"Exported chat to {target}", fg="green")
    else:
        click.secho(f"Unknown command: {command}. Try /help.", fg="yellow")
    return True


def _reset_service(conversation: ConversationController) -> None:
    reset = getattr(conversation.service, "reset", None)
    if callable(reset):
        reset()


async def _chat_loop(sessions: SessionListController, conversation: ConversationController) -> None:
    _print_transcript(sessions.selected_session)
    click.secho("Type /help for commands, /quit to leave.", fg="bright_black")
    while True:
        line = await _read_line("you")
        if line is None:
            click.echo()
            return
        text = line.strip()
        if not text:
            continue
        if text.startswith("/"):
            if not await _run_slash_command(text, sessions, conversation):
                return
            continue
        if sessions.selected_session is None:
            sessions.create_session()

        task = conversation.submit_nowait(text)
        if task is None:
            continue
        click.secho("Assistant is thinking…", fg="bright_black")
        reply = await task
        _print_message_text(reply.sender, reply.text)


@cli.command()
@session_option
@click.pass_obj
def chat(obj: ChatContext, session_ref: str | None) -> None:
    """Interactive chat loop on a chat (newest by default)."""
    sessions = obj.sessions
    if len(sessions):
        _select(sessions, session_ref)
    else:
        sessions.create_session()
    conversation = ConversationController(sessions, obj.service())
    asyncio.run(_chat_loop(sessions, conversation))


# ── Export & diagnostics ──────────────────────────────────────────────────────


@cli.command(name="export")
@session_option
@click.option(
    "--format",
    "fmt",
    type=click.Choice(EXPORT_FORMATS),
    default=None,
    help="Export format. Inferred from --output suffix when omitted.",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Target file. Defaults to <title>.jsonl in the current directory.",
)
@click.pass_obj
def export_cmd(
    obj: ChatContext, session_ref: str | None, fmt: str | None, output: Path | None
) -> None:
    """Export a chat transcript as JSONL or Markdown."""
    session = _resolve_session(obj.sessions, session_ref)
    target = output or default_export_path(session, fmt or "jsonl")
    written = export_session(session, target, fmt)
    click.secho(f"Exported chat to {written}", fg="green")


@cli.command()
@click.pass_obj
def doctor(obj: ChatContext) -> None:
    """Check that the on-device model and chat storage are usable."""
    config = obj.config
    click.secho("Foundation Chat diagnostics\n", fg="cyan", bold=True)
    click.echo(f"  Storage backend : {config.backend}")
    click.echo(f"  Data directory  : {config.data_dir}")
    click.echo(f"  Slot key        : {config.slot_key}")

    available, reason = model_status()
    if available:
        click.secho("  Foundation Model: available", fg="green")
        return
    click.secho(f"  Foundation Model: unavailable ({reason})", fg="red")
    click.secho("  Use --offline to try the app without the model.", fg="yellow")
    raise SystemExit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
