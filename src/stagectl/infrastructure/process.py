"""Blocking external-command primitive.

Every external tool (scaffolder, npm, test runner, deploy CLI) runs through
:func:`run_command`, which turns a non-zero exit status or a missing
executable into :class:`~stagectl.domain.errors.ProcessFailure`. Callers
never inspect raw return codes.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from stagectl.domain.errors import ProcessFailure

logger = logging.getLogger(__name__)

# Overlaid on the inherited environment for every invocation.
BASE_ENV: dict[str, str] = {
    "CI": "1",
    "FORCE_COLOR": "0",
}

# Uncaptured tool output shares the log stream; stdout carries only the result.
STDERR_FILENO = 2


def scoped_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Inherited environment plus :data:`BASE_ENV` plus *extra*."""
    env = dict(os.environ)
    env.update(BASE_ENV)
    if extra:
        env.update(extra)
    return env


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path,
    env: Mapping[str, str] | None = None,
    stage: str | None = None,
    capture: bool = False,
    failure_message: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion in *cwd*.

    Output streams to stderr unless *capture* is set; stdout is left to the
    command result.

    Raises:
        ProcessFailure: The command could not start or exited non-zero.
    """
    args = list(argv)
    command = " ".join(args)
    logger.debug("Running %s (cwd=%s)", command, cwd)
    try:
        completed = subprocess.run(
            args,
            cwd=cwd,
            env=scoped_env(env),
            stdout=subprocess.PIPE if capture else STDERR_FILENO,
            stderr=subprocess.PIPE if capture else None,
            text=True,
            check=False,
        )
    except (OSError, ValueError) as exc:
        msg = failure_message or f"Could not run {command}: {exc}"
        raise ProcessFailure(msg, argv=args, stage=stage) from exc

    if completed.returncode != 0:
        msg = failure_message or f"{command} exited with status {completed.returncode}"
        raise ProcessFailure(msg, argv=args, returncode=completed.returncode, stage=stage)
    return completed
