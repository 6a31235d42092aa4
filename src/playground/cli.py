"""Playground shell: a terminal front end for the conversation engine.

A rich TUI that drives ``ChatSession`` directly, rendering streamed answers
as Markdown with the reasoning channel shown dimmed above them.
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.table import Table
from rich.text import Text

from .app import create_catalog, create_session
from .catalog import ModelCatalog
from .chat.notifications import LoggingNotifier
from .chat.routing import Mode
from .chat.session import ChatSession
from .chat.store import Attachment, Message
from .chat.types import NoticeLevel
from .clients.base import PooledHttpClient
from .config import get_settings
from .errors import PlaygroundError
from .logging_config import configure_logging
from .schemas.image import ASPECT_RATIOS, RESOLUTION_TIERS

logger = logging.getLogger(__name__)

# Styles
USER_STYLE = Style(color="bright_blue", bold=True)
ASSISTANT_STYLE = Style(color="bright_green")
REASONING_STYLE = Style(color="grey50", italic=True)
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

_NOTICE_STYLES = {
    "info": INFO_STYLE,
    "success": Style(color="green"),
    "warning": Style(color="yellow"),
    "error": ERROR_STYLE,
}


class ConsoleNotifier(LoggingNotifier):
    """Log notices and echo them to the terminal."""

    def __init__(self, console: Console) -> None:
        super().__init__()
        self._console = console

    def notify(self, level: NoticeLevel, message: str) -> None:
        super().notify(level, message)
        self._console.print(message, style=_NOTICE_STYLES.get(level, INFO_STYLE))


def file_to_attachment(path: Path) -> Attachment:
    """Read a local file into a ``data:`` URL attachment."""

    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return Attachment(
        url=f"data:{media_type};base64,{encoded}",
        media_type=media_type,
        filename=path.name,
    )


def url_to_attachment(url: str) -> Attachment:
    filename = url.rstrip("/").rsplit("/", 1)[-1] or "attachment"
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return Attachment(url=url, media_type=media_type, filename=filename)


def render_message(message: Message) -> Group:
    """Build the renderable for one assistant or user message."""

    version = message.active_version
    parts = []
    if version.reasoning_content:
        parts.append(Text(version.reasoning_content, style=REASONING_STYLE))
    if version.generated_image is not None:
        size = len(base64.b64decode(version.generated_image.data or ""))
        parts.append(
            Text(
                f"[image: {version.generated_image.mime_type}, {size} bytes]",
                style=INFO_STYLE,
            )
        )
    if version.content:
        parts.append(Markdown(version.content))
    return Group(*parts)


class PlaygroundShell:
    """Terminal chat client for the model playground."""

    def __init__(
        self,
        session: ChatSession,
        catalog: ModelCatalog,
        console: Optional[Console] = None,
    ) -> None:
        self.session = session
        self.catalog = catalog
        self.console = console or Console()
        self.pending_attachments: list[Attachment] = []
        self.running = True

    def _fail(self, message: str) -> None:
        self.session.notifier.notify("error", message)

    def _show_status(self) -> None:
        session = self.session
        model = session.active_model or "(none)"
        self.console.print(
            f"[dim]Model: {model} | mode: {session.mode.value} | "
            f"status: {session.status.value}[/dim]"
        )

    async def _list_models(self) -> None:
        """Show the model catalog."""
        entries = await self.catalog.list_available_models()
        if not entries:
            self.console.print("[dim]No models available[/dim]")
            return
        table = Table(title="Models", show_lines=False)
        table.add_column("Id")
        table.add_column("Name")
        table.add_column("Provider")
        table.add_column("Dialect")
        table.add_column("Image")
        for entry in entries:
            marker = "✓" if entry.image_generation else ""
            if entry.configurable_resolution:
                marker += " (res)"
            table.add_row(
                entry.id,
                entry.display_name,
                entry.provider_family,
                entry.dialect.value,
                marker,
            )
        self.console.print(table)

    def _set_model(self, model_id: str) -> None:
        had_history = bool(self.session.messages)
        route = self.session.select_model(model_id)
        self.console.print(
            f"[info]Model set to: {model_id} ({route.dialect.value})[/info]",
            style=INFO_STYLE,
        )
        if had_history and not self.session.messages:
            self.console.print("[dim]History cleared[/dim]")

    def _set_mode(self, value: str) -> None:
        aliases = {"chat": Mode.CHAT, "image": Mode.IMAGE_GENERATION}
        mode = self.session.set_mode(aliases.get(value.lower(), value))
        self.console.print(f"[info]Mode: {mode.value}[/info]", style=INFO_STYLE)

    def _set_param(self, name: str, value: str) -> None:
        sampling = self.session.update_sampling(**{name: value})
        self.console.print(
            f"[info]{name} = {getattr(sampling, name)}[/info]", style=INFO_STYLE
        )

    def _show_history(self) -> None:
        messages = self.session.messages
        if not messages:
            self.console.print("[dim]No messages yet[/dim]")
            return
        for index, message in enumerate(messages, start=1):
            style = USER_STYLE if message.role == "user" else ASSISTANT_STYLE
            title = f"{index}. {message.role}"
            if len(message.versions) > 1:
                title += f" (v{message.active_version_index + 1}/{len(message.versions)})"
            if message.attachments:
                names = ", ".join(a.filename for a in message.attachments)
                title += f" [{names}]"
            self.console.print(
                Panel(render_message(message), title=title, border_style=style)
            )

    def _message_at(self, position: str) -> Optional[Message]:
        try:
            index = int(position) - 1
        except ValueError:
            self._fail(f"Not a message number: {position}")
            return None
        messages = self.session.messages
        if not 0 <= index < len(messages):
            self._fail(f"No message #{position}")
            return None
        return messages[index]

    def _edit_message(self, position: str, text: str) -> None:
        message = self._message_at(position)
        if message is None:
            return
        version = message.active_version
        self.session.start_edit(message.key, version.id)
        try:
            self.session.save_edit(message.key, version.id, text)
        except PlaygroundError:
            self.session.cancel_edit(message.key, version.id)
            raise

    def _delete_message(self, position: str) -> None:
        message = self._message_at(position)
        if message is not None:
            self.session.delete_message(message.key)

    def _attach(self, target: str) -> None:
        if target.startswith(("http://", "https://", "data:")):
            attachment = url_to_attachment(target)
        else:
            path = Path(target).expanduser()
            if not path.is_file():
                self._fail(f"File not found: {target}")
                return
            attachment = file_to_attachment(path)
        self.pending_attachments.append(attachment)
        self.console.print(
            f"[info]Attached {attachment.filename} ({attachment.media_type})[/info]",
            style=INFO_STYLE,
        )

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = f"""
[bold]Commands:[/bold]
  /help                 Show this help message
  /models               List available models
  /model                Show current model and status
  /model <id>           Select a model (may clear history)
  /mode chat|image      Switch mode (clears history)
  /set <param> <value>  temperature, max_tokens, top_p,
                        frequency_penalty, presence_penalty
  /aspect <ratio>       {", ".join(ASPECT_RATIOS)}
  /resolution <tier>    {", ".join(RESOLUTION_TIERS)} or none
  /attach <path|url>    Attach a file to the next message
  /history              Show the conversation
  /edit <n> <text>      Replace the text of message n
  /delete <n>           Delete message n
  /reset                Clear the conversation
  /quit                 Exit

[bold]Shortcuts:[/bold]
  Ctrl+C                Cancel current request
  Ctrl+D                Exit
"""
        self.console.print(
            Panel(help_text.strip(), title="Playground Help", border_style="blue")
        )

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=2)
        if not parts:
            return False

        command = parts[0].lower()
        args = parts[1:]

        if command == "/help":
            self._show_help()
        elif command == "/quit":
            self.running = False
        elif command == "/models":
            await self._list_models()
        elif command == "/model":
            if args:
                self._set_model(args[0])
            else:
                self._show_status()
        elif command == "/mode":
            if args:
                self._set_mode(args[0])
            else:
                self.console.print("[dim]Usage: /mode chat|image[/dim]")
        elif command == "/set":
            if len(args) == 2:
                self._set_param(args[0], args[1])
            else:
                self.console.print("[dim]Usage: /set <param> <value>[/dim]")
        elif command == "/aspect":
            if args:
                config = self.session.update_image_config(aspect_ratio=args[0])
                self.console.print(
                    f"[info]Aspect ratio: {config.aspect_ratio}[/info]",
                    style=INFO_STYLE,
                )
            else:
                self.console.print("[dim]Usage: /aspect <ratio>[/dim]")
        elif command == "/resolution":
            if args:
                tier = None if args[0].lower() == "none" else args[0].upper()
                config = self.session.update_image_config(resolution=tier)
                self.console.print(
                    f"[info]Resolution: {config.resolution or 'default'}[/info]",
                    style=INFO_STYLE,
                )
            else:
                self.console.print("[dim]Usage: /resolution <tier|none>[/dim]")
        elif command == "/attach":
            if args:
                self._attach(" ".join(args))
            else:
                self.console.print("[dim]Usage: /attach <path|url>[/dim]")
        elif command == "/history":
            self._show_history()
        elif command == "/edit":
            if len(args) == 2:
                self._edit_message(args[0], args[1])
            else:
                self.console.print("[dim]Usage: /edit <n> <text>[/dim]")
        elif command == "/delete":
            if args:
                self._delete_message(args[0])
            else:
                self.console.print("[dim]Usage: /delete <n>[/dim]")
        elif command == "/reset":
            self.session.reset()
            self.pending_attachments.clear()
            self.console.print(
                "[info]Conversation cleared. Starting fresh.[/info]", style=INFO_STYLE
            )
        else:
            return False
        return True

    async def _send(self, text: str) -> None:
        """Send a turn and render the assistant message as it streams."""
        attachments = tuple(self.pending_attachments)
        sent_before = len(self.session.messages)

        with Live(console=self.console, refresh_per_second=10) as live:

            def _refresh(session: ChatSession) -> None:
                messages = session.messages
                if messages and messages[-1].role == "assistant":
                    live.update(render_message(messages[-1]))

            unsubscribe = self.session.subscribe(_refresh)
            try:
                await self.session.send(text, attachments)
            finally:
                unsubscribe()
                # Attachments stay pending until a turn actually carries them
                if len(self.session.messages) > sent_before:
                    self.pending_attachments.clear()

    async def run(self) -> None:
        """Main chat loop."""
        self.console.print()
        self.console.print(
            "[bold]Playground[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self._show_status()
        self.console.print()

        while self.running:
            try:
                user_input = Prompt.ask("[bold blue]You[/bold blue]")
                if not user_input.strip() and not self.pending_attachments:
                    continue

                if user_input.startswith("/"):
                    if await self._handle_command(user_input):
                        continue

                self.console.print()
                await self._send(user_input)
                self.console.print()

            except PlaygroundError as exc:
                # Rejections are reported through the notifier
                logger.debug("Command rejected: %s", exc)
            except EOFError:
                self.console.print("\n[dim]Goodbye![/dim]")
                break
            except KeyboardInterrupt:
                self.console.print()
                continue
            except asyncio.CancelledError:
                # Ctrl+C while streaming cancels the request, not the shell
                task = asyncio.current_task()
                if task is not None:
                    task.uncancel()
                continue


async def _run_shell(shell: PlaygroundShell) -> None:
    try:
        await shell.run()
    finally:
        await PooledHttpClient.aclose_shared()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Playground - stream chat and image models in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  playground                               Use PLAYGROUND_DEFAULT_MODEL
  playground --model gpt-4o-mini           Start chatting with a model
  playground --model gemini-2.5-flash-image --mode image

Environment Variables:
  OPENAI_API_KEY, GEMINI_API_KEY, LOG_LEVEL, LOG_FILE
""",
    )
    parser.add_argument(
        "--model",
        "-m",
        default=None,
        help="Model to select on startup",
    )
    parser.add_argument(
        "--mode",
        choices=("chat", "image"),
        default="chat",
        help="Initial mode (default: chat)",
    )

    args = parser.parse_args()
    configure_logging()

    console = Console()
    settings = get_settings()
    session = create_session(settings, notifier=ConsoleNotifier(console))
    catalog = create_catalog(settings)
    shell = PlaygroundShell(session, catalog, console=console)

    try:
        if args.model:
            shell._set_model(args.model)
        if args.mode == "image":
            shell._set_mode("image")
    except PlaygroundError as exc:
        logger.debug("Startup selection rejected: %s", exc)

    try:
        asyncio.run(_run_shell(shell))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
