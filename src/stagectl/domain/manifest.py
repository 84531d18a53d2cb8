"""Line-preserving parser for ``.arc`` deployment manifests.

An ``.arc`` file is a list of pragmas (``@app``, ``@http``, ``@static``...)
each followed by indented or bare value lines. ``#`` starts a comment.

INVARIANT: ``ArcManifest.parse(text).render() == text`` for any input.
Only the ``@app`` body is ever rewritten; every other line is kept as the
exact string it was read from, line endings included.
"""

from __future__ import annotations

from dataclasses import dataclass, field

APP_PRAGMA = "app"


def _strip_comment(line: str) -> str:
    return line.split("#", 1)[0].strip()


def _is_pragma(line: str) -> bool:
    return _strip_comment(line).startswith("@")


def _pragma_name(line: str) -> str:
    words = _strip_comment(line)[1:].split()
    return words[0] if words else ""


@dataclass
class ArcSection:
    """One pragma and the raw lines beneath it."""

    name: str
    header: str
    body: list[str] = field(default_factory=list)

    def values(self) -> list[str]:
        """Non-blank, non-comment lines with comments stripped."""
        return [v for v in (_strip_comment(line) for line in self.body) if v]


@dataclass
class ArcManifest:
    """Parsed manifest: lines before the first pragma, then the sections."""

    preamble: list[str] = field(default_factory=list)
    sections: list[ArcSection] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> ArcManifest:
        manifest = cls()
        current: ArcSection | None = None
        for line in text.splitlines(keepends=True):
            if _is_pragma(line):
                current = ArcSection(name=_pragma_name(line), header=line)
                manifest.sections.append(current)
            elif current is None:
                manifest.preamble.append(line)
            else:
                current.body.append(line)
        return manifest

    def render(self) -> str:
        parts = list(self.preamble)
        for section in self.sections:
            parts.append(section.header)
            parts.extend(section.body)
        return "".join(parts)

    def section(self, name: str) -> ArcSection | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    @property
    def app(self) -> list[str]:
        """Values of the ``@app`` pragma (normally exactly one name)."""
        section = self.section(APP_PRAGMA)
        return section.values() if section is not None else []

    def set_app(self, app_name: str) -> None:
        """Make *app_name* the single ``@app`` value.

        Earlier values are dropped; comments and blank lines inside the
        ``@app`` block stay where they were. A missing ``@app`` pragma is
        inserted ahead of the first section.
        """
        newline = self._newline()
        section = self.section(APP_PRAGMA)
        if section is None:
            section = ArcSection(
                name=APP_PRAGMA,
                header=f"@{APP_PRAGMA}{newline}",
                body=[f"{app_name}{newline}"],
            )
            if self.sections:
                section.body.append(newline)
            if self.preamble and not self.preamble[-1].endswith(("\n", "\r")):
                self.preamble[-1] += newline
            self.sections.insert(0, section)
            return

        if not section.header.endswith(("\n", "\r")):
            section.header += newline
        body: list[str] = []
        placed = False
        for line in section.body:
            if _strip_comment(line):
                if not placed:
                    body.append(f"{app_name}{_line_ending(line) or newline}")
                    placed = True
                continue
            body.append(line)
        if not placed:
            body.insert(0, f"{app_name}{newline}")
        section.body = body

    def _newline(self) -> str:
        for line in [*self.preamble, *(s.header for s in self.sections)]:
            ending = _line_ending(line)
            if ending:
                return ending
        return "\n"


def _line_ending(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    if line.endswith(("\n", "\r")):
        return line[-1]
    return ""
