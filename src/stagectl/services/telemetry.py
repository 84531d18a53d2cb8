"""Stage timing and run traces.

Every stage is timed through :func:`timed`, which always yields a live
:class:`Span`; its duration is what lands in the stage record. With
``--verbose`` the spans also nest into a tree rooted at the run, and
:func:`trace_result` attaches that tree to ``ServiceResult.meta["trace"]``.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from stagectl.services.result import ServiceResult

log = structlog.get_logger("stagectl.telemetry")

_tracing_enabled: ContextVar[bool] = ContextVar("_tracing_enabled", default=False)
_current_span: ContextVar[Span | None] = ContextVar("_current_span", default=None)


@dataclass
class Span:
    """Timing span. Reports elapsed time while open, final time once closed."""

    name: str
    children: list[Span] = field(default_factory=list)
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None
    annotations: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ms(self) -> float:
        end = self.end_time if self.end_time is not None else time.perf_counter()
        return (end - self.start_time) * 1000

    @property
    def closed(self) -> bool:
        return self.end_time is not None

    def close(self) -> None:
        if self.end_time is None:
            self.end_time = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.annotations:
            result["annotations"] = self.annotations
        if self.children:
            result["children"] = [c.to_dict() for c in self.children]
        return result


@contextmanager
def timed(name: str) -> Generator[Span]:
    """Time the enclosed block as *name*.

    The span joins the current trace only while tracing is enabled and a
    trace is open; it is timed either way.
    """
    span = Span(name=name)
    parent = _current_span.get() if _tracing_enabled.get() else None
    if parent is None:
        try:
            yield span
        finally:
            span.close()
        return

    parent.children.append(span)
    token = _current_span.set(span)
    try:
        yield span
    finally:
        span.close()
        _current_span.reset(token)
        log.debug(
            "span.closed", span=name, parent=parent.name, duration_ms=round(span.duration_ms, 2)
        )


_P = ParamSpec("_P")
_R = TypeVar("_R")


def trace_result(name: str) -> Callable[[Callable[_P, _R]], Callable[_P, _R]]:
    """Decorator: open a trace named *name* and attach it to the returned result.

    Plain pass-through while tracing is disabled.
    """

    def decorator(func: Callable[_P, _R]) -> Callable[_P, _R]:
        @functools.wraps(func)
        def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
            if not _tracing_enabled.get():
                return func(*args, **kwargs)

            root = Span(name=name)
            token = _current_span.set(root)
            try:
                result = func(*args, **kwargs)
            finally:
                root.close()
                _current_span.reset(token)

            if isinstance(result, ServiceResult):
                meta = {**(result.meta or {}), "trace": root.to_dict()}
                result = result.model_copy(update={"meta": meta})  # type: ignore[assignment]
            return result

        return wrapper

    return decorator


def enable_tracing() -> None:
    """Collect span trees for this context (``--verbose``)."""
    _tracing_enabled.set(True)


def disable_tracing() -> None:
    _tracing_enabled.set(False)
