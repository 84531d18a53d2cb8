"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). Renderers are
dispatched by ``result.op`` in :func:`render_result`; unknown ops fall
through to a generic key-value renderer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from stagectl.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from stagectl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} — {msg}"
    for key in ("endpoint", "app_name"):
        value = result.data.get(key)
        if value:
            return str(value)
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="stage.ok")
    op = Text(f"  {result.op}", style="stage.op")
    console.print(label, op)


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="stage.key")
    if key in ("app_name", "stack_id", "appname", "name"):
        v = Text(str(value), style="stage.name")
    elif key == "endpoint" and value:
        v = Text(str(value), style="stage.url")
    elif key.endswith("_dir"):
        v = Text(str(value), style="stage.path")
    else:
        v = Text(str(value))
    console.print(Text.assemble(k, v))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including the run trace (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "trace":
            _render_trace_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_trace_tree(
    console: Console,
    span_data: dict[str, Any],
    indent: int = 4,
) -> None:
    """Render a hierarchical span tree with color-coded timing."""
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 60_000:
        style = "bold red"
    elif duration > 10_000:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>10.2f}ms[/{style}]  {name}"
    annotations = span_data.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span_data.get("children", []):
        _render_trace_tree(console, child, indent=indent + 4)


def _stage_table(stages: list[dict[str, Any]], *, verbose: bool = False) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Stage", no_wrap=True)
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    if verbose:
        table.add_column("Detail", style="dim")

    for stage in stages:
        status = str(stage.get("status", ""))
        duration = stage.get("duration_ms") or 0.0
        row: list[Any] = [
            str(stage.get("stage", "")),
            Text(status, style=style_for_status(status)),
            f"{duration / 1000:.1f}s" if status != "skipped" else "",
        ]
        if verbose:
            row.append(str(stage.get("detail") or ""))
        table.add_row(*row)
    return table


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    console.print(
        Text("ERROR", style="stage.error"),
        Text(f"  {result.op}", style="stage.op"),
        Text(" — "),
        msg,
    )

    detail = dict(err.detail) if err else {}
    for error in detail.pop("errors", None) or []:
        console.print(f"  [stage.error]-[/stage.error] {escape(str(error))}")
    if detail.get("stage"):
        _field(console, "stage", detail.pop("stage"))
    if verbose:
        for k, v in detail.items():
            _field(console, k, v)

    stages = result.data.get("stages")
    if stages:
        console.print()
        console.print(_stage_table(stages, verbose=verbose))
    if "destroyed" in result.data:
        _field(console, "destroyed", result.data["destroyed"])
    if verbose:
        _render_meta(console, result)


# ── Operation renderers ───────────────────────────────────────────────


def _render_run(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("app_name", "stack_id", "endpoint", "destroyed"):
        if result.data.get(key) is not None:
            _field(console, key, result.data[key])
    if verbose:
        _field(console, "project_dir", result.data.get("project_dir", ""))
    stages = result.data.get("stages", [])
    if stages:
        console.print()
        console.print(_stage_table(stages, verbose=verbose))
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


_OP_RENDERERS: dict[str, Any] = {
    "run": _render_run,
    "name": _render_generic,
    "endpoint": _render_generic,
    "destroy": _render_generic,
}
