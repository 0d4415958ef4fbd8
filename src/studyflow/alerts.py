"""Alert capability used by the scheduler: alarm sound, messages, notifications."""
import logging

from rich.console import Console
from rich.panel import Panel

logger = logging.getLogger(__name__)


class Alerter:
    """Base alert capability. Subclasses override what the platform supports."""

    def play_alarm(self) -> None:
        pass

    def show_message(self, title: str, body: str, persistent: bool = False) -> None:
        pass

    def notify(self, title: str, body: str, tag: str) -> None:
        """OS-level notification. ``tag`` is stable per topic so repeats replace each other."""


class ConsoleAlerter(Alerter):
    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def play_alarm(self) -> None:
        self.console.bell()

    def show_message(self, title: str, body: str, persistent: bool = False) -> None:
        self.console.print(Panel(
            body, title=title, border_style="yellow" if persistent else "green",
        ))

    def notify(self, title: str, body: str, tag: str) -> None:
        self.console.print(f"[bold cyan]{title}[/bold cyan] [dim]{body}[/dim]")


def safe_alert(action, *args, **kwargs) -> bool:
    """Invoke an alert method, logging and swallowing any failure."""
    try:
        action(*args, **kwargs)
    except Exception as e:
        logger.warning(f"Alert {getattr(action, '__name__', action)} failed: {e}")
        return False
    return True
