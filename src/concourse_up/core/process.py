"""Helpers for running the external CLIs concourse-up drives."""

import os
import shutil
import subprocess
from typing import Callable

from concourse_up.core.exceptions import ConcourseUpError
from concourse_up.core.logging import get_logger

logger = get_logger(__name__)


def find_binary(binary: str, error: Callable[[str], ConcourseUpError]) -> str:
    """Resolve a CLI binary on PATH or raise the caller's error type."""
    path = shutil.which(binary)
    if not path:
        raise error(f"{binary} not found on PATH")
    return path


def run_command(
    cmd: list[str],
    error: Callable[[str], ConcourseUpError],
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    capture: bool = True,
    input: str | None = None,
) -> subprocess.CompletedProcess:
    """Run a command and return the completed process.

    With capture=False stdout streams to the terminal and only stderr is
    captured, so failures can still be reported.
    """
    run_env = os.environ.copy()
    if env:
        run_env.update(env)

    logger.debug("Running %s", " ".join(cmd[:2]))

    try:
        return subprocess.run(
            cmd,
            cwd=cwd,
            env=run_env,
            text=True,
            input=input,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.PIPE,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise error(f"Failed to run {cmd[0]}: {e}")
