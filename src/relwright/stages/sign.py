"""Detached signatures through an external signing command."""

from __future__ import annotations

import logging
from pathlib import Path

from .. import process
from ..artifacts import Artifact, ArtifactKind
from ..config import Sign
from ..context import Context
from ..resolve import Resolver
from ..stage import Stage

logger = logging.getLogger(__name__)

_SELECTION: dict[str, tuple[ArtifactKind, ...]] = {
    "none": (),
    "checksum": (ArtifactKind.CHECKSUM,),
    "archive": (ArtifactKind.ARCHIVE,),
    "all": (ArtifactKind.ARCHIVE, ArtifactKind.UPLOADABLE_BINARY, ArtifactKind.CHECKSUM),
}


class SignStage(Stage):
    name = "sign"

    def skip(self, ctx: Context) -> str | None:
        if ctx.skip_sign:
            return "signing disabled"
        if not ctx.config.signs:
            return "no signing configured"
        return None

    def run(self, ctx: Context) -> None:
        for sign in ctx.config.signs:
            kinds = _SELECTION[sign.artifacts]
            if not kinds:
                logger.debug("Sign '%s' selects no artifacts", sign.id)
                continue
            for artifact in ctx.artifacts.filter(*kinds):
                ctx.artifacts.add(self._sign(ctx, sign, artifact))

    def _sign(self, ctx: Context, sign: Sign, artifact: Artifact) -> Artifact:
        fields = ctx.template_fields(artifact=str(artifact.path), artifact_name=artifact.name)
        signature = Path(Resolver(fields).render(sign.signature))
        if not signature.is_absolute():
            signature = ctx.dist / signature
        fields["signature"] = str(signature)

        argv = [sign.cmd, *Resolver(fields).render_all(sign.args)]
        logger.info("Signing %s", artifact.name)
        process.run(argv, cwd=ctx.cwd, cancel=ctx.cancel, env=ctx.env())

        if not signature.is_file():
            raise ValueError(f"sign '{sign.id}': {sign.cmd} did not produce {signature}")
        return Artifact(
            name=signature.name,
            path=signature,
            kind=ArtifactKind.SIGNATURE,
            target=artifact.target,
            build_id=sign.id,
            extra={"signs": artifact.name},
        )
