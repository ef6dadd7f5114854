"""Run options and their reconciliation onto the execution context."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from .context import DEFAULT_TIMEOUT, CancelToken, Context

logger = logging.getLogger(__name__)


class RunOptions(BaseModel):
    """Explicit caller intent; read once by reconcile(), never mutated."""

    model_config = {"frozen": True, "extra": "forbid"}

    snapshot: bool = False
    auto_snapshot: bool = False
    skip_publish: bool = False
    skip_sign: bool = False
    skip_validate: bool = False
    parallelism: int = Field(default=0, ge=0)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    release_notes_file: Path | None = None
    release_header_file: Path | None = None
    release_footer_file: Path | None = None
    release_notes_tmpl: Path | None = None
    release_header_tmpl: Path | None = None
    release_footer_tmpl: Path | None = None
    rm_dist: bool = False
    deprecated: bool = False
    config: Path | None = None


def reconcile(ctx: Context, options: RunOptions) -> None:
    """Apply options to ctx, then enforce the skip implications.

    ctx.snapshot normally already holds the resolved mode; an explicit
    snapshot request is folded in as well. Implications only ever
    turn skips on: snapshot forces publish, validate and announce off, and
    skipping publish also skips announce. Signing stays independent.
    """
    if options.parallelism > 0:
        ctx.parallelism = options.parallelism
    ctx.rm_dist = options.rm_dist
    ctx.deprecated = options.deprecated
    ctx.timeout = options.timeout
    ctx.cancel = CancelToken(options.timeout)

    # each content slot is copied on its own; file and template may coexist
    if options.release_notes_file is not None:
        ctx.release_notes_file = options.release_notes_file
    if options.release_header_file is not None:
        ctx.release_header_file = options.release_header_file
    if options.release_footer_file is not None:
        ctx.release_footer_file = options.release_footer_file
    if options.release_notes_tmpl is not None:
        ctx.release_notes_tmpl = options.release_notes_tmpl
    if options.release_header_tmpl is not None:
        ctx.release_header_tmpl = options.release_header_tmpl
    if options.release_footer_tmpl is not None:
        ctx.release_footer_tmpl = options.release_footer_tmpl

    ctx.snapshot = ctx.snapshot or options.snapshot
    ctx.skip_sign = options.skip_sign
    ctx.skip_publish = ctx.skip_publish or options.skip_publish
    ctx.skip_validate = ctx.skip_validate or options.skip_validate

    if ctx.snapshot:
        logger.debug("Snapshot mode: skipping publish, validate and announce")
        ctx.skip_publish = True
        ctx.skip_validate = True
        ctx.skip_announce = True
    if ctx.skip_publish:
        ctx.skip_announce = True
