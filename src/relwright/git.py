"""Repository inspection through the git command line."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import GitError

logger = logging.getLogger(__name__)

_GIT_TIMEOUT_SECONDS = 30.0

SEMVER_TAG = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+([0-9A-Za-z.-]+))?$"
)

DEFAULT_TAG = "v0.0.0"


def is_semver(tag: str) -> bool:
    return SEMVER_TAG.match(tag) is not None


@dataclass(frozen=True, slots=True)
class GitInfo:
    """Facts about HEAD recorded before the pipeline starts."""

    tag: str = DEFAULT_TAG
    previous_tag: str | None = None
    commit: str = "none"
    short_commit: str = "none"
    dirty: bool = False


class Repository:
    """Read-only view of a git working tree.

    Every inspection failure raises GitError; nothing falls back silently.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def dirty_files(self, exclude: Iterable[str] = ()) -> list[str]:
        """Return the paths reported by git status, minus excluded prefixes."""
        skip = [e.strip("/") for e in exclude if e]
        files: list[str] = []
        for line in self._run("status", "--porcelain").splitlines():
            if len(line) < 4:
                continue
            path = line[3:].strip().strip('"').rstrip("/")
            if any(path == s or path.startswith(s + "/") for s in skip):
                continue
            files.append(path)
        return files

    def is_clean(self, exclude: Iterable[str] = ()) -> bool:
        return not self.dirty_files(exclude)

    def current_tag(self) -> str | None:
        """Return the highest semver tag pointing at HEAD, if any."""
        tags = self._semver_tags("--points-at", "HEAD")
        return tags[0] if tags else None

    def latest_tag(self) -> str | None:
        """Return the highest semver tag reachable from HEAD, if any."""
        tags = self._semver_tags("--merged", "HEAD")
        return tags[0] if tags else None

    def previous_tag(self, tag: str) -> str | None:
        """Return the reachable semver tag that precedes tag, if any."""
        tags = self._semver_tags("--merged", "HEAD")
        if tag in tags:
            following = tags[tags.index(tag) + 1 :]
            return following[0] if following else None
        return tags[0] if tags else None

    def commit(self) -> str:
        return self._run("rev-parse", "HEAD").strip()

    def short_commit(self) -> str:
        return self._run("rev-parse", "--short", "HEAD").strip()

    def log(self, since: str | None = None) -> list[str]:
        """Return one-line commit summaries from since (exclusive) to HEAD."""
        rev = f"{since}..HEAD" if since else "HEAD"
        out = self._run("log", "--pretty=format:%h %s", "--no-decorate", rev)
        return [line for line in out.splitlines() if line.strip()]

    def info(self, exclude: Iterable[str] = ()) -> GitInfo:
        """Collect the tag, previous tag and commit facts about HEAD."""
        tag = self.current_tag() or self.latest_tag() or DEFAULT_TAG
        previous = self.previous_tag(tag) if tag != DEFAULT_TAG else None
        return GitInfo(
            tag=tag,
            previous_tag=previous,
            commit=self.commit(),
            short_commit=self.short_commit(),
            dirty=not self.is_clean(exclude),
        )

    def _semver_tags(self, *args: str) -> list[str]:
        out = self._run("tag", "--list", "--sort=-version:refname", *args)
        return [t for t in (line.strip() for line in out.splitlines()) if is_semver(t)]

    def _run(self, *args: str) -> str:
        command = " ".join(args[:2])
        logger.debug("Running git %s in %s", " ".join(args), self.path)
        try:
            proc = subprocess.run(
                ["git", "-C", str(self.path), *args],
                capture_output=True,
                text=True,
                timeout=_GIT_TIMEOUT_SECONDS,
                check=False,
            )
        except FileNotFoundError:
            raise GitError(command, "git is not installed or not on PATH") from None
        except subprocess.TimeoutExpired:
            raise GitError(command, f"timed out after {_GIT_TIMEOUT_SECONDS}s") from None
        if proc.returncode != 0:
            raise GitError(command, proc.stderr.strip() or f"exit status {proc.returncode}")
        return proc.stdout
