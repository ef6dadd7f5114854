"""Publish artifacts to the configured destinations."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from .. import process
from ..artifacts import Artifact, ArtifactKind
from ..config import Publisher
from ..context import Context
from ..resolve import Resolver
from ..stage import Stage

logger = logging.getLogger(__name__)


class ReleaseStage(Stage):
    name = "release"

    def skip(self, ctx: Context) -> str | None:
        if ctx.skip_publish:
            return "publishing disabled"
        if not ctx.config.publishers:
            return "no publishers configured"
        return None

    def run(self, ctx: Context) -> None:
        for publisher in ctx.config.publishers:
            kinds = [ArtifactKind(k) for k in publisher.kinds]
            artifacts = ctx.artifacts.filter(*kinds) if kinds else []
            if not artifacts:
                logger.warning("Publisher '%s' has nothing to publish", publisher.name)
                continue
            logger.info("Publishing %d artifact(s) with '%s'", len(artifacts), publisher.name)
            if publisher.kind == "directory":
                self._to_directory(ctx, publisher, artifacts)
            else:
                self._with_command(ctx, publisher, artifacts)

    def _to_directory(self, ctx: Context, publisher: Publisher, artifacts: list[Artifact]) -> None:
        dest = Path(Resolver(ctx.template_fields()).render(publisher.path or ""))
        if not dest.is_absolute():
            dest = ctx.cwd / dest
        dest.mkdir(parents=True, exist_ok=True)
        for artifact in artifacts:
            logger.debug("Copying %s to %s", artifact.name, dest)
            shutil.copy2(artifact.path, dest / artifact.name)
        if ctx.release_notes:
            (dest / "RELEASE_NOTES.md").write_text(ctx.release_notes)

    def _with_command(self, ctx: Context, publisher: Publisher, artifacts: list[Artifact]) -> None:
        for artifact in artifacts:
            fields = ctx.template_fields(
                artifact_path=str(artifact.path),
                artifact_name=artifact.name,
                artifact_kind=str(artifact.kind),
            )
            argv = Resolver(fields).render_all(publisher.cmd)
            process.run(argv, cwd=ctx.cwd, cancel=ctx.cancel, env=ctx.env())
