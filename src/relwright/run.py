"""Release orchestration: configuration, mode, options, preparation, pipeline."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from . import config
from .context import Context
from .errors import DistNotEmptyError
from .mode import resolve_snapshot
from .options import RunOptions, reconcile
from .pipeline import Pipeline
from .resolve import render
from .stage import Stage
from .stages import defaults

logger = logging.getLogger(__name__)


def setup(options: RunOptions, *, cwd: Path | None = None, repo=None) -> Context:
    """Load the configuration and build a reconciled context.

    Configuration and repository errors surface here, before any stage runs.
    """
    cwd = cwd or Path.cwd()
    file = options.config
    if file is not None and not file.is_absolute():
        file = cwd / file
    project = config.load(file, cwd=cwd)
    for note in project.deprecations():
        logger.warning("DEPRECATED: %s", note)

    ctx = Context(project, cwd=cwd)
    if repo is not None:
        ctx.repo = repo
    ctx.snapshot = resolve_snapshot(
        ctx.repo,
        explicit=options.snapshot,
        auto=options.auto_snapshot,
        exclude=[project.dist],
    )
    reconcile(ctx, options)
    return ctx


def prepare(ctx: Context) -> None:
    """Record git facts and the version, then get an empty dist directory."""
    ctx.git = ctx.repo.info([ctx.config.dist])
    if ctx.snapshot:
        ctx.version = render(ctx.config.snapshot.template, ctx.template_fields())
    else:
        ctx.version = ctx.git.tag.removeprefix("v")
    logger.info(
        "Releasing %s %s%s",
        ctx.config.project_name,
        ctx.version,
        " (snapshot)" if ctx.snapshot else "",
    )
    prepare_dist(ctx)


def prepare_dist(ctx: Context) -> None:
    dist = ctx.dist
    if dist.exists() and any(dist.iterdir()):
        if not ctx.rm_dist:
            raise DistNotEmptyError(dist)
        logger.info("Removing %s", dist)
        shutil.rmtree(dist)
    dist.mkdir(parents=True, exist_ok=True)


def release(
    options: RunOptions,
    *,
    cwd: Path | None = None,
    repo=None,
    stages: list[Stage] | None = None,
) -> Context:
    """Run a complete release; the first fatal error is raised to the caller."""
    ctx = setup(options, cwd=cwd, repo=repo)
    prepare(ctx)
    pipeline = Pipeline(stages=stages if stages is not None else defaults())
    pipeline.run(ctx)
    return ctx
