"""Build collaborators: turn one (build, target) pair into a binary artifact."""

from __future__ import annotations

import ast
import logging
import zipapp
from pathlib import Path

from . import process
from .artifacts import Artifact, ArtifactKind
from .config import Build
from .context import Context
from .errors import BuildError, SourceError
from .resolve import Resolver
from .targets import Target

logger = logging.getLogger(__name__)

_ALWAYS_EXCLUDED = {".git", "__pycache__", ".venv", ".tox"}


def binary_name(ctx: Context, build: Build, target: Target) -> str:
    name = Resolver(ctx.template_fields(**_target_fields(target))).render(
        build.binary or ctx.config.project_name
    )
    if target.os == "windows" and build.builder == "command" and not name.endswith(".exe"):
        name += ".exe"
    return name


def output_path(ctx: Context, build: Build, target: Target) -> Path:
    """dist/<build id>_<target>/<binary>"""
    return ctx.dist / f"{build.id}_{target}" / binary_name(ctx, build, target)


def _target_fields(target: Target) -> dict[str, str]:
    return {
        "os": target.os,
        "arch": target.arch,
        "variant": target.variant,
        "target": str(target),
    }


def check_sources(root: Path, *, exclude: set[str]) -> int:
    """Parse every Python source under root; a syntax error raises SourceError.

    Returns the number of files checked.
    """
    count = 0
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if any(part in exclude or part in _ALWAYS_EXCLUDED for part in rel.parts[:-1]):
            continue
        try:
            ast.parse(path.read_text(), filename=str(rel))
        except SyntaxError as exc:
            raise SourceError(
                str(rel),
                exc.lineno or 0,
                exc.offset or 0,
                exc.msg,
            ) from None
        count += 1
    return count


class ZipappBuilder:
    """Package a Python source tree as an executable zip application."""

    interpreter = "/usr/bin/env python3"

    def compile(self, ctx: Context, build: Build, target: Target) -> Artifact:
        source = (ctx.cwd / build.main).resolve()
        if not source.is_dir():
            raise BuildError(f"build '{build.id}': {build.main} is not a directory", target=target)

        excluded = {Path(ctx.config.dist).parts[0]}
        checked = check_sources(source, exclude=excluded)
        logger.debug("Checked %d source file(s) for %s", checked, target)

        if build.entrypoint is None and not (source / "__main__.py").is_file():
            raise BuildError(
                f"build '{build.id}': no entrypoint set and no __main__.py in {build.main}",
                target=target,
            )

        out = output_path(ctx, build, target)
        out.parent.mkdir(parents=True, exist_ok=True)

        def _include(path: Path) -> bool:
            return not any(p in excluded or p in _ALWAYS_EXCLUDED for p in path.parts)

        zipapp.create_archive(
            source,
            target=out,
            interpreter=self.interpreter,
            main=build.entrypoint,
            filter=_include,
            compressed=True,
        )
        return Artifact(
            name=out.name,
            path=out,
            kind=ArtifactKind.BINARY,
            target=target,
            build_id=build.id,
        )


class CommandBuilder:
    """Run a user-supplied build command once per target."""

    def compile(self, ctx: Context, build: Build, target: Target) -> Artifact:
        out = output_path(ctx, build, target)
        out.parent.mkdir(parents=True, exist_ok=True)

        fields = ctx.template_fields(**_target_fields(target), output=str(out))
        argv = Resolver(fields).render_all(build.command)
        env = {
            **ctx.env(),
            **build.env,
            "RELWRIGHT_OS": target.os,
            "RELWRIGHT_ARCH": target.arch,
            "RELWRIGHT_VARIANT": target.variant,
            "RELWRIGHT_OUTPUT": str(out),
        }
        process.run(argv, cwd=ctx.cwd, cancel=ctx.cancel, env=env)

        if not out.is_file():
            raise BuildError(
                f"build '{build.id}' for {target} did not produce {out}",
                target=target,
            )
        return Artifact(
            name=out.name,
            path=out,
            kind=ArtifactKind.BINARY,
            target=target,
            build_id=build.id,
        )


BUILDERS = {
    "zipapp": ZipappBuilder(),
    "command": CommandBuilder(),
}
