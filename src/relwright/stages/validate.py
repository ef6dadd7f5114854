"""Pre-flight checks: the single gate in front of the whole run."""

from __future__ import annotations

import logging

from ..context import Context
from ..errors import DirtyTreeError, ValidationError
from ..stage import Stage

logger = logging.getLogger(__name__)


class ValidateStage(Stage):
    name = "validate"

    def skip(self, ctx: Context) -> str | None:
        if ctx.skip_validate:
            return "validation disabled"
        return None

    def run(self, ctx: Context) -> None:
        dirty = ctx.repo.dirty_files([ctx.config.dist])
        if dirty:
            raise DirtyTreeError(dirty)

        if ctx.repo.current_tag() is None:
            raise ValidationError(
                f"no semantic version tag points at the current commit (latest tag: {ctx.git.tag})"
            )

        deprecated = ctx.config.deprecations()
        if deprecated and not ctx.deprecated:
            raise ValidationError(
                "configuration uses deprecated fields: "
                + "; ".join(deprecated)
                + " (allow them explicitly to continue)"
            )
        for note in deprecated:
            logger.warning("DEPRECATED: %s", note)
