"""Release notes: user supplied, templated, or generated from git history."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import jinja2

from ..config import ChangelogConfig
from ..context import Context
from ..stage import Stage

logger = logging.getLogger(__name__)

CHANGELOG_FILE = "CHANGELOG.md"


def render_template(file: Path, fields: dict) -> str:
    """Render a Jinja2 template file with the context's template fields."""
    text = file.read_text()
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        return env.from_string(text).render(fields)
    except jinja2.TemplateError as exc:
        raise ValueError(f"{file}: {exc}") from exc


def filter_entries(entries: list[str], cfg: ChangelogConfig) -> list[str]:
    """Drop excluded entries and apply the configured sort.

    Entries are "<short hash> <subject>" lines; filters and sorting look at
    the subject only.
    """
    patterns = [re.compile(p) for p in cfg.exclude]

    def subject(entry: str) -> str:
        return entry.split(" ", 1)[1] if " " in entry else ""

    kept = [e for e in entries if not any(p.search(subject(e)) for p in patterns)]
    if cfg.sort == "asc":
        kept.sort(key=subject)
    elif cfg.sort == "desc":
        kept.sort(key=subject, reverse=True)
    return kept


class ChangelogStage(Stage):
    name = "changelog"

    def skip(self, ctx: Context) -> str | None:
        if ctx.config.changelog.skip:
            return "changelog disabled"
        return None

    def run(self, ctx: Context) -> None:
        notes = self._content(ctx, ctx.release_notes_file, ctx.release_notes_tmpl)
        if notes is None:
            notes = self._generate(ctx)
        header = self._content(ctx, ctx.release_header_file, ctx.release_header_tmpl)
        footer = self._content(ctx, ctx.release_footer_file, ctx.release_footer_tmpl)

        parts = [p.strip("\n") for p in (header, notes, footer) if p]
        ctx.release_notes = "\n\n".join(parts) + "\n"

        path = ctx.dist / CHANGELOG_FILE
        path.write_text(ctx.release_notes)
        logger.info("Wrote %s", path.name)

    def _content(self, ctx: Context, file: Path | None, tmpl: Path | None) -> str | None:
        """File contents when a file is given, else the rendered template, else None."""
        if file is not None:
            logger.debug("Using %s as-is", file)
            return (ctx.cwd / file).read_text()
        if tmpl is not None:
            logger.debug("Rendering %s", tmpl)
            return render_template(ctx.cwd / tmpl, ctx.template_fields())
        return None

    def _generate(self, ctx: Context) -> str:
        entries = filter_entries(ctx.repo.log(ctx.git.previous_tag), ctx.config.changelog)
        logger.debug("Changelog has %d entries since %s", len(entries), ctx.git.previous_tag)
        lines = ["## Changelog", ""]
        lines += [f"* {entry}" for entry in entries]
        return "\n".join(lines)
