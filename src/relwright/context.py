"""Runtime execution context for the release pipeline."""

from __future__ import annotations

import os
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .artifacts import Artifacts
from .config import Project
from .errors import PipelineCancelled, PipelineTimeout
from .git import GitInfo, Repository

DEFAULT_TIMEOUT = 30 * 60.0


def default_parallelism() -> int:
    return max(1, os.cpu_count() or 1)


class CancelToken:
    """Cancellation signal shared by a whole run: a deadline plus an explicit trigger."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        if self.expired:
            self.cancel("timeout")
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if not self.cancelled:
            return
        if self.reason == "timeout":
            raise PipelineTimeout(self.timeout)
        raise PipelineCancelled(self.reason or "cancelled")


class Context:
    """Runtime state passed through the stage chain.

    One instance per run. Only the options reconciler and the sequential
    stages write to it; the artifact set is the single concurrently written
    structure.
    """

    def __init__(self, config: Project, *, cwd: Path | None = None) -> None:
        self.config = config
        self.cwd = cwd or Path.cwd()

        self.snapshot = False
        self.skip_publish = False
        self.skip_sign = False
        self.skip_validate = False
        self.skip_announce = False
        self.parallelism = default_parallelism()
        self.rm_dist = False
        self.deprecated = False

        self.release_notes_file: Path | None = None
        self.release_header_file: Path | None = None
        self.release_footer_file: Path | None = None
        self.release_notes_tmpl: Path | None = None
        self.release_header_tmpl: Path | None = None
        self.release_footer_tmpl: Path | None = None

        self.timeout = DEFAULT_TIMEOUT
        self.cancel = CancelToken(self.timeout)

        self.repo = Repository(self.cwd)
        self.git = GitInfo()
        self.version = ""
        self.release_notes = ""
        self.date = datetime.now(UTC)
        self.artifacts = Artifacts()

    @property
    def dist(self) -> Path:
        return self.cwd / self.config.dist

    def env(self) -> dict[str, str]:
        """Environment for external commands: the process env plus the project's."""
        return {**os.environ, **self.config.env}

    def template_fields(self, **extra: Any) -> dict[str, Any]:
        """Fields available to ${...} name templates."""
        fields: dict[str, Any] = {
            "project_name": self.config.project_name,
            "version": self.version,
            "tag": self.git.tag,
            "previous_tag": self.git.previous_tag or "",
            "commit": self.git.commit,
            "short_commit": self.git.short_commit,
            "is_snapshot": self.snapshot,
            "date": self.date.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "timestamp": int(self.date.timestamp()),
            "env": self.env(),
        }
        fields.update(extra)
        return fields

    def __repr__(self) -> str:
        return (
            f"Context(project={self.config.project_name!r}, version={self.version!r}, "
            f"snapshot={self.snapshot}, artifacts={len(self.artifacts)})"
        )
