"""Run identity — app name, stack logical ID, and project directory.

INVARIANT: One identity per run. It is computed once at process start
and passed explicitly to every component; nothing looks it up globally.
"""

from __future__ import annotations

import os
import re
import secrets
import tempfile
from pathlib import Path

from pydantic import BaseModel

REVISION_ENV_VAR = "GITHUB_SHA"


def make_app_name(
    template: str,
    *,
    prefix: str = "remix",
    revision: str | None = None,
) -> str:
    """Generate a unique application name for one disposable environment.

    Examples:
        ``remix-arc-1f2e3d4-a9b0`` (with a revision) or ``remix-arc-a9b0``.
    """
    if revision is None:
        revision = os.environ.get(REVISION_ENV_VAR) or None
    unique = secrets.token_hex(2)
    parts = [prefix, template]
    if revision:
        parts.append(revision[:7])
    parts.append(unique)
    return "-".join(parts)


def to_logical_id(name: str) -> str:
    """Convert a resource name to a CloudFormation-style logical ID.

    Examples:
        >>> to_logical_id("remix-arc-1a2b")
        'RemixArc1a2b'
        >>> to_logical_id("myApp")
        'MyApp'
        >>> to_logical_id("get")
        'GetIndex'
    """
    text = re.sub(r"([A-Z])", r" \1", name)
    if len(text) == 1:
        return text.upper()
    text = re.sub(r"^[\W_]+|[\W_]+$", "", text).lower()
    text = text[:1].upper() + text[1:]
    text = re.sub(r"[\W_]+(\w|$)", lambda m: m.group(1).upper(), text)
    if text == "Get":
        return "GetIndex"
    return text


def stack_id_for(app_name: str, environment: str = "staging") -> str:
    """Stack name the deploy tool creates for *app_name* in *environment*."""
    return to_logical_id(app_name) + environment.capitalize()


class RunIdentity(BaseModel):
    """Unique, immutable identity of one disposable environment."""

    model_config = {"frozen": True}

    app_name: str
    stack_id: str
    project_dir: Path
    template: str
    environment: str = "staging"

    @classmethod
    def create(
        cls,
        template: str,
        *,
        prefix: str = "remix",
        apps_dir: Path | None = None,
        environment: str = "staging",
        revision: str | None = None,
    ) -> RunIdentity:
        """Derive a fresh identity for *template*."""
        app_name = make_app_name(template, prefix=prefix, revision=revision)
        base = apps_dir if apps_dir is not None else Path(tempfile.gettempdir())
        return cls(
            app_name=app_name,
            stack_id=stack_id_for(app_name, environment),
            project_dir=base / app_name,
            template=template,
            environment=environment,
        )
