"""Package binaries into per-target archives."""

from __future__ import annotations

import logging
import shutil
import tarfile
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

from ..artifacts import Artifact, ArtifactKind
from ..config import Archive
from ..context import Context
from ..resolve import Resolver
from ..stage import SkipStage, Stage
from ..targets import Target

logger = logging.getLogger(__name__)


def _group_by_target(binaries: list[Artifact]) -> dict[Target | None, list[Artifact]]:
    groups: dict[Target | None, list[Artifact]] = {}
    for binary in binaries:
        groups.setdefault(binary.target, []).append(binary)
    return groups


def _extra_files(ctx: Context, archive: Archive) -> list[tuple[Path, str]]:
    files: list[tuple[Path, str]] = []
    for pattern in archive.files:
        matches = sorted(p for p in ctx.cwd.glob(pattern) if p.is_file())
        if not matches:
            raise ValueError(f"archive '{archive.id}': no files match '{pattern}'")
        files.extend((p, p.relative_to(ctx.cwd).as_posix()) for p in matches)
    return files


def _write_tar(path: Path, members: list[tuple[Path, str]]) -> None:
    with tarfile.open(path, "w:gz") as tar:
        for src, arc in members:
            tar.add(src, arcname=arc)


def _write_zip(path: Path, members: list[tuple[Path, str]]) -> None:
    # mtime=0 files cannot be represented in zip without relaxed timestamps
    with ZipFile(path, "w", compression=ZIP_DEFLATED, strict_timestamps=False) as zf:
        for src, arc in members:
            zf.write(src, arcname=arc)


class ArchiveStage(Stage):
    name = "archive"

    def run(self, ctx: Context) -> None:
        binaries = ctx.artifacts.filter(ArtifactKind.BINARY)
        if not binaries:
            raise SkipStage("no binaries to archive")

        seen: set[Path] = set()
        for archive in ctx.config.archives or [Archive()]:
            selected = [b for b in binaries if not archive.builds or b.build_id in archive.builds]
            if not selected:
                logger.warning("Archive '%s' matches no binaries", archive.id)
                continue
            extra = _extra_files(ctx, archive)
            for target, group in _group_by_target(selected).items():
                for artifact in self._package(ctx, archive, target, group, extra):
                    if artifact.path in seen:
                        raise ValueError(
                            f"archive '{archive.id}' produced {artifact.name} twice; "
                            "make name_template unique per target"
                        )
                    seen.add(artifact.path)
                    ctx.artifacts.add(artifact)

    def _package(
        self,
        ctx: Context,
        archive: Archive,
        target: Target | None,
        binaries: list[Artifact],
        extra: list[tuple[Path, str]],
    ) -> list[Artifact]:
        fields = ctx.template_fields()
        if target is not None:
            fields.update(
                os=target.os,
                arch=target.arch,
                variant=target.variant,
                target=str(target),
            )
        name = Resolver(fields).render(archive.name_template)

        if archive.format == "binary":
            return [self._copy_binary(ctx, archive, name, b, len(binaries) > 1) for b in binaries]

        filename = f"{name}.{archive.format}"
        path = ctx.dist / filename
        prefix = f"{name}/" if archive.wrap_in_directory else ""
        members = [(b.path, prefix + b.path.name) for b in binaries]
        members += [(src, prefix + arc) for src, arc in extra]

        logger.info("Creating %s", filename)
        if archive.format == "zip":
            _write_zip(path, members)
        else:
            _write_tar(path, members)

        return [
            Artifact(
                name=filename,
                path=path,
                kind=ArtifactKind.ARCHIVE,
                target=target,
                build_id=archive.id,
                extra={"format": archive.format, "binaries": [b.name for b in binaries]},
            )
        ]

    def _copy_binary(
        self,
        ctx: Context,
        archive: Archive,
        name: str,
        binary: Artifact,
        qualify: bool,
    ) -> Artifact:
        filename = f"{name}_{binary.name}" if qualify else name
        path = ctx.dist / filename
        logger.info("Copying %s to %s", binary.name, filename)
        shutil.copy2(binary.path, path)
        return Artifact(
            name=filename,
            path=path,
            kind=ArtifactKind.UPLOADABLE_BINARY,
            target=binary.target,
            build_id=archive.id,
            extra={"format": "binary"},
        )
