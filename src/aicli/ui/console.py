"""Rich console UI for ai-cli."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.styles import Style as PTStyle
from prompt_toolkit.validation import ValidationError, Validator
from rich.console import Console, Group
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.spinner import Spinner
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

# Returns an error message, or None when the input is acceptable
InputCheck = Callable[[str], Optional[str]]


class _CheckValidator(Validator):
    def __init__(self, check: InputCheck):
        self.check = check

    def validate(self, document) -> None:
        error = self.check(document.text)
        if error:
            raise ValidationError(message=error, cursor_position=len(document.text))


class AICliConsole:
    """Rich console for ai-cli."""

    BANNER = """
[bold cyan] █████╗ ██╗      ██████╗██╗     ██╗[/]
[bold cyan]██╔══██╗██║     ██╔════╝██║     ██║[/]
[bold cyan]███████║██║     ██║     ██║     ██║[/]
[bold cyan]██╔══██║██║     ██║     ██║     ██║[/]
[bold cyan]██║  ██║██║     ╚██████╗███████╗██║[/]
[bold cyan]╚═╝  ╚═╝╚═╝      ╚═════╝╚══════╝╚═╝[/]
"""

    def __init__(
        self,
        verbose: bool = False,
        console: Optional[Console] = None,
        history_path: Optional[Path] = None,
    ):
        self.console = console or Console()
        self.verbose = verbose
        self.history_path = history_path
        self._prompt_session: Optional[PromptSession] = None

    @property
    def prompt_session(self) -> PromptSession:
        """Prompt session with up/down arrow history, created on first use."""
        if self._prompt_session is None:
            history = InMemoryHistory()
            if self.history_path is not None:
                self.history_path.parent.mkdir(parents=True, exist_ok=True)
                history = FileHistory(str(self.history_path))

            self._prompt_session = PromptSession(
                history=history,
                style=PTStyle.from_dict({"prompt": "bold cyan"}),
                enable_history_search=True,  # Ctrl+R for reverse search
            )
        return self._prompt_session

    def print_banner(self, version: str):
        self.console.print(self.BANNER)
        self.console.print("[dim]A cli based AI tool[/dim]", f"[dim]v{version}[/dim]\n")

    # ------------------------------------------------------------------
    # Status lines
    # ------------------------------------------------------------------

    def thinking(self, message: str = "Thinking..."):
        """Return a spinner context for thinking state."""
        return self.console.status(f"[bold cyan]{message}[/]", spinner="dots")

    def print_error(self, error: str, recoverable: bool = True):
        """Print an error message."""
        style = "yellow" if recoverable else "red"
        icon = "⚠" if recoverable else "✗"
        self.console.print(f"[{style}]{icon} {error}[/{style}]")

    def print_success(self, message: str):
        self.console.print(f"[green]✓ {message}[/green]")

    def print_info(self, message: str):
        self.console.print(f"[blue]ℹ {message}[/blue]")

    def print_warning(self, message: str):
        self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def print_hint(self, message: str):
        self.console.print(f"[dim]{message}[/dim]")

    def print_goodbye(self, message: str = "Goodbye!"):
        self.console.print(f"\n[bold cyan]👋 {message}[/bold cyan]\n")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def prompt_input(
        self,
        message: str = "You> ",
        check: Optional[InputCheck] = None,
    ) -> str:
        """
        Read a line with history and optional validation.

        Ctrl+C and Ctrl+D propagate as KeyboardInterrupt / EOFError so the
        caller can end the session.
        """
        validator = _CheckValidator(check) if check else None
        return await self.prompt_session.prompt_async(
            message,
            validator=validator,
            validate_while_typing=False,
        )

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask for confirmation."""
        return Confirm.ask(message, console=self.console, default=default)

    def select(self, message: str, options: Sequence[tuple[str, str, str]]) -> str:
        """Pick one of (value, label, hint) options by number or value."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold cyan")
        table.add_column(style="bold")
        table.add_column(style="dim")
        for index, (_, label, hint) in enumerate(options, start=1):
            table.add_row(str(index), label, hint)
        self.console.print(table)

        choices = [str(i) for i in range(1, len(options) + 1)] + [value for value, _, _ in options]
        answer = Prompt.ask(message, console=self.console, choices=choices, show_choices=False, default="1")
        if answer.isdigit():
            return options[int(answer) - 1][0]
        return answer

    def multi_select(self, message: str, options: Sequence[tuple[str, str, str]]) -> List[str]:
        """Pick any number of (value, label, hint) options as comma-separated numbers."""
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold cyan")
        table.add_column(style="bold")
        table.add_column(style="dim")
        for index, (_, label, hint) in enumerate(options, start=1):
            table.add_row(str(index), label, hint)
        self.console.print(table)

        answer = Prompt.ask(f"{message} [dim](e.g. 1,2 or blank for none)[/dim]", console=self.console, default="")
        selected = []
        for part in answer.split(","):
            part = part.strip()
            if part.isdigit() and 1 <= int(part) <= len(options):
                value = options[int(part) - 1][0]
                if value not in selected:
                    selected.append(value)
        return selected

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def print_device_code(self, verification_uri: str, user_code: str):
        self.console.print(
            Panel(
                f"Please visit [underline blue]{verification_uri}[/]\n\n"
                f"Enter code: [bold green]{user_code}[/]",
                title="[bold cyan]Device authorization required[/]",
                border_style="cyan",
            )
        )

    def print_user(self, name: str, email: str):
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold green")
        table.add_row("User:", name)
        table.add_row("Email:", email)
        self.console.print(table)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def print_conversation_info(
        self,
        title: str,
        conversation_id: str,
        mode: str,
        working_dir: Optional[Path] = None,
    ):
        lines = [
            f"[bold]Conversation: {title}[/]",
            f"[dim]ID: {conversation_id}[/]",
            f"[dim]Mode: {mode}[/]",
        ]
        if working_dir is not None:
            lines.append(f"[cyan]Working Directory: {working_dir}[/]")
        border = "magenta" if mode == "agent" else "cyan"
        self.console.print(
            Panel("\n".join(lines), title=f"{mode.title()} session", border_style=border, padding=(1, 2))
        )

    def print_user_message(self, content: str, title: str = "You"):
        self.console.print(Panel(Text(content), title=f"[bold blue]{title}[/]", border_style="blue"))

    def print_message(self, message: str, title: str = "Assistant"):
        """Print an AI response in a panel with markdown."""
        self.console.print(Panel(Markdown(message), title=f"[bold green]{title}[/]", border_style="green"))

    def print_history(self, messages: Sequence[tuple[str, str]]):
        """Replay (role, content) pairs of an earlier conversation."""
        self.console.print("[yellow]Previous messages:[/]")
        for role, content in messages:
            if role == "user":
                self.print_user_message(content)
            else:
                self.print_message(content)

    @contextmanager
    def streaming_response(self, title: str = "Assistant") -> Iterator[Callable[[str], None]]:
        """
        Live panel that shows a spinner until the first chunk arrives, then
        re-renders the accumulated markdown on every chunk.
        """
        buffer: List[str] = []
        spinner = Spinner("dots", text="[cyan]AI is thinking...[/cyan]")

        with Live(spinner, console=self.console, refresh_per_second=12) as live:
            def on_chunk(text: str) -> None:
                buffer.append(text)
                live.update(
                    Panel(Markdown("".join(buffer)), title=f"[bold green]{title}[/]", border_style="green")
                )

            yield on_chunk

            if not buffer:
                live.update(Text(""))

    # ------------------------------------------------------------------
    # Agent output
    # ------------------------------------------------------------------

    def print_file_tree(self, folder_name: str, paths: Sequence[str]):
        """Show generated files as a directory tree."""
        tree = Tree(f"[bold]{folder_name}/[/]", guide_style="dim")
        nodes = {"": tree}
        for path in sorted(paths):
            parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
            prefix = ""
            for directory in parts[:-1]:
                key = f"{prefix}/{directory}" if prefix else directory
                if key not in nodes:
                    nodes[key] = nodes[prefix].add(f"[bold blue]{directory}/[/]")
                prefix = key
            if parts:
                nodes[prefix].add(parts[-1])

        self.console.print("\n[green]Project Structure:[/]")
        self.console.print(tree)

    def print_file_written(self, path: str):
        self.console.print(f"  [green]✓[/green] {path}")

    def print_setup_commands(self, commands: Sequence[str]):
        if not commands:
            return
        self.console.print("\n[cyan]Next Steps:[/]")
        self.console.print(Syntax("\n".join(commands), "bash", theme="monokai", line_numbers=False))
        self.console.print()

    def print_agent_help(self):
        body = Group(
            Text("What can the agent do?", style="bold cyan"),
            Text(""),
            Text(" Generate complete applications from descriptions", style="dim"),
            Text(" Create all necessary files and folders", style="dim"),
            Text(" Include setup instructions and commands", style="dim"),
            Text(""),
            Text("Examples:", style="bold yellow"),
            Text("Build a todo app with React and Tailwind"),
            Text("Create a REST API with Express and MongoDB"),
            Text(""),
            Text('Type "exit" to end the session', style="dim"),
        )
        self.console.print(Panel(body, title="Agent Instructions", border_style="cyan", padding=(1, 2)))

    def print_chat_help(self, tools: Optional[Sequence[str]] = None):
        lines = [
            "Type your message and press enter",
            "Markdown formatting is supported in responses",
            "Type 'exit' to end conversation",
            "Press ctrl+c to quit anytime",
        ]
        if tools:
            lines.append(f"Enabled tools: {', '.join(tools)}")
        self.console.print(Panel("\n".join(lines), border_style="dim", padding=(1, 2)))
