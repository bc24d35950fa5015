"""Rich-powered console output for codeask."""

from __future__ import annotations

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from codeask import __version__
from codeask.context.models import ContextResult
from codeask.context.serializer import format_bytes


class Console:
    """Terminal output for codeask using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()
        self.err_console = RichConsole(stderr=True)

    def banner(self) -> None:
        """Show the codeask banner."""
        self.console.print(
            Panel(
                f"[bold cyan]codeask[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Ask an LLM with your whole project as context[/dim]",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {escape(message)}")

    def raw(self, text: str) -> None:
        """Print text verbatim, without markup or highlighting."""
        self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)

    def stream_chunk(self, chunk: str) -> None:
        """Write one streamed response chunk without a trailing newline."""
        self.console.print(chunk, end="", markup=False, highlight=False, emoji=False, soft_wrap=True)

    def log_handler(self, verbose: bool = False) -> logging.Handler:
        """A logging handler that renders records on stderr."""
        handler = RichHandler(console=self.err_console, show_path=False, markup=False)
        handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        return handler

    def show_context_summary(self, result: ContextResult, token_ceiling: int) -> None:
        """Display what went into the context."""
        table = Table(title="Project Context", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Files", str(result.file_count))
        table.add_row("Size", format_bytes(result.total_size_bytes))
        pct = result.total_estimated_tokens / max(token_ceiling, 1) * 100
        table.add_row(
            "Estimated tokens",
            f"~{result.total_estimated_tokens:,} / {token_ceiling:,} ({pct:.0f}%)",
        )
        table.add_row("Rules", escape(result.rules.file_name) if result.rules else "none")

        self.console.print(table)

    def show_diagnosis(self, title: str, diagnosis: str) -> None:
        """Display a fatal error with its remediation."""
        self.console.print(
            Panel(
                Text(diagnosis),
                title=f"[bold red]{escape(title)}[/bold red]",
                border_style="red",
            )
        )

    def show_retry(self, attempt: int, max_attempts: int, delay_ms: int, diagnosis: str) -> None:
        self.console.print()
        self.warning(diagnosis)
        self.console.print(
            f"  [yellow]→[/yellow] Attempt {attempt}/{max_attempts} failed. "
            f"Retrying in {delay_ms / 1000:g} seconds..."
        )
