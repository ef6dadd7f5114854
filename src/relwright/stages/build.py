"""Build every configured target, fanning out in parallel."""

from __future__ import annotations

import logging

from ..builders import BUILDERS
from ..context import Context
from ..coordinator import Builder, build_all
from ..stage import Stage
from ..targets import matrix

logger = logging.getLogger(__name__)


class BuildStage(Stage):
    name = "build"

    def __init__(self, builders: dict[str, Builder] | None = None) -> None:
        self.builders: dict[str, Builder] = builders if builders is not None else dict(BUILDERS)

    def skip(self, ctx: Context) -> str | None:
        if not any(not b.skip for b in ctx.config.builds):
            return "no builds configured"
        return None

    def run(self, ctx: Context) -> None:
        for build in ctx.config.builds:
            if build.skip:
                logger.debug("Build '%s' is marked skip", build.id)
                continue
            targets = matrix(build)
            if not targets:
                logger.warning("Build '%s' has no targets after filtering", build.id)
                continue
            builder = self.builders[build.builder]
            logger.info(
                "Building '%s' for %d target(s), parallelism %d",
                build.id,
                len(targets),
                ctx.parallelism,
            )
            ctx.artifacts.extend(build_all(ctx, build, targets, builder))
