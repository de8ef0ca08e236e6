"""
Notification sinks.

The coordinator only needs a callable notify(title, body, with_sound).
ConsoleNotifier is the default for headless runs and prints a rich panel.
"""

from typing import Protocol

from rich.console import Console
from rich.panel import Panel


class Notifier(Protocol):
    def __call__(self, title: str, body: str, with_sound: bool = True) -> None: ...


class ConsoleNotifier:
    """Render notifications to the terminal."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def __call__(self, title: str, body: str, with_sound: bool = True) -> None:
        self.console.print(Panel(body, title=f"[bold green]{title}[/bold green]", expand=False))
        if with_sound:
            self.console.bell()


class NullNotifier:
    """Discard notifications."""

    def __call__(self, title: str, body: str, with_sound: bool = True) -> None:
        return None
