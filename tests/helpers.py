"""Shared fakes for the relwright tests."""

from __future__ import annotations

from pathlib import Path

from relwright.config import Project
from relwright.context import Context
from relwright.errors import GitError
from relwright.git import DEFAULT_TAG, GitInfo


class FakeRepo:
    """In-memory stand-in for relwright.git.Repository."""

    def __init__(
        self,
        *,
        dirty: list[str] | None = None,
        tag: str | None = "v1.0.0",
        previous_tag: str | None = "v0.9.0",
        entries: list[str] | None = None,
        error: GitError | None = None,
    ) -> None:
        self.dirty = dirty or []
        self.tag = tag
        self.previous = previous_tag
        self.entries = entries or []
        self.error = error
        self.log_calls: list[str | None] = []

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def dirty_files(self, exclude=()) -> list[str]:
        self._check()
        return list(self.dirty)

    def is_clean(self, exclude=()) -> bool:
        return not self.dirty_files(exclude)

    def current_tag(self) -> str | None:
        self._check()
        return self.tag

    def log(self, since: str | None = None) -> list[str]:
        self._check()
        self.log_calls.append(since)
        return list(self.entries)

    def info(self, exclude=()) -> GitInfo:
        self._check()
        return GitInfo(
            tag=self.tag or DEFAULT_TAG,
            previous_tag=self.previous,
            commit="abc1234def5678",
            short_commit="abc1234",
            dirty=bool(self.dirty),
        )


def make_ctx(tmp_path: Path, repo: FakeRepo | None = None, **config) -> Context:
    """A context for project 'fake' at version 1.0.0 with an empty dist."""
    config.setdefault("project_name", "fake")
    ctx = Context(Project(**config), cwd=tmp_path)
    ctx.repo = repo or FakeRepo()
    ctx.git = ctx.repo.info()
    ctx.version = "1.0.0"
    ctx.dist.mkdir(parents=True, exist_ok=True)
    return ctx
