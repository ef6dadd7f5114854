"""External command execution bounded by the run's cancellation signal."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .context import CancelToken
from .errors import CommandError

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.1


def run(
    cmd: list[str],
    *,
    cwd: Path,
    cancel: CancelToken,
    env: dict[str, str] | None = None,
    stdin: str | None = None,
) -> str:
    """Execute a command and return its stdout.

    The process is killed as soon as the cancel token fires, whether by its
    deadline or by an explicit cancel, and the matching error is raised.
    """
    cancel.raise_if_cancelled()
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=env,
            stdin=subprocess.PIPE if stdin is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as exc:
        raise CommandError(tuple(cmd), -1, str(exc)) from exc

    pending = stdin
    while True:
        try:
            stdout, stderr = proc.communicate(input=pending, timeout=_POLL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            # input was handed over on the first call; retries keep the output
            pending = None
            if cancel.cancelled:
                logger.debug("Killing %s: %s", cmd[0], cancel.reason)
                proc.kill()
                proc.communicate()
                cancel.raise_if_cancelled()

    if proc.returncode != 0:
        raise CommandError(tuple(cmd), proc.returncode, stderr)
    return stdout
