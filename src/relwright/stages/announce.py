"""Announce a published release."""

from __future__ import annotations

import logging

from .. import process
from ..context import Context
from ..resolve import Resolver
from ..stage import Stage

logger = logging.getLogger(__name__)


class AnnounceStage(Stage):
    name = "announce"

    def skip(self, ctx: Context) -> str | None:
        if ctx.skip_announce:
            return "announcing disabled"
        if not ctx.config.announcers:
            return "no announcers configured"
        return None

    def run(self, ctx: Context) -> None:
        for announcer in ctx.config.announcers:
            fields = ctx.template_fields()
            message = Resolver(fields).render(announcer.message_template)
            argv = Resolver({**fields, "message": message}).render_all(announcer.cmd)
            logger.info("Announcing with '%s'", announcer.name)
            process.run(argv, cwd=ctx.cwd, cancel=ctx.cancel, env=ctx.env(), stdin=message)
