"""Write a single checksums file covering every uploadable artifact."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from ..artifacts import Artifact, ArtifactKind
from ..context import Context
from ..resolve import Resolver
from ..stage import SkipStage, Stage

logger = logging.getLogger(__name__)


def digest(path: Path, algorithm: str) -> str:
    h = hashlib.new(algorithm)
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


class ChecksumStage(Stage):
    name = "checksum"

    def skip(self, ctx: Context) -> str | None:
        if ctx.config.checksum.disable:
            return "checksums disabled"
        return None

    def run(self, ctx: Context) -> None:
        items = ctx.artifacts.filter(ArtifactKind.ARCHIVE, ArtifactKind.UPLOADABLE_BINARY)
        if not items:
            raise SkipStage("nothing to checksum")

        cfg = ctx.config.checksum
        filename = Resolver(ctx.template_fields()).render(cfg.name_template)
        path = ctx.dist / filename
        lines = [
            f"{digest(a.path, cfg.algorithm)}  {a.name}\n"
            for a in sorted(items, key=lambda a: a.name)
        ]
        path.write_text("".join(lines))
        logger.info("Wrote %s (%d entries)", filename, len(lines))

        ctx.artifacts.add(
            Artifact(
                name=filename,
                path=path,
                kind=ArtifactKind.CHECKSUM,
                extra={"algorithm": cfg.algorithm},
            )
        )
