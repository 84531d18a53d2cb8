"""Rich Console factory and theme for stagectl output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract. In non-TTY environments (tests,
pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

STAGE_THEME = Theme(
    {
        "stage.ok": "bold green",
        "stage.error": "bold red",
        "stage.warning": "bold yellow",
        "stage.skipped": "dim",
        "stage.op": "bold cyan",
        "stage.key": "dim",
        "stage.name": "bold blue",
        "stage.url": "underline",
        "stage.path": "dim",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "ok": "stage.ok",
    "failed": "stage.error",
    "skipped": "stage.skipped",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=STAGE_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Return the Rich style name for a stage status."""
    return _STATUS_STYLES.get(status, "")
