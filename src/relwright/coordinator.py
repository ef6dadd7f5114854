"""Parallel build coordinator: a bounded fan-out over build targets."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol

from .artifacts import Artifact
from .config import Build
from .context import Context
from .targets import Target

logger = logging.getLogger(__name__)


class Builder(Protocol):
    """Turns one target of one build into one artifact, or raises."""

    def compile(self, ctx: Context, build: Build, target: Target) -> Artifact: ...


def build_all(
    ctx: Context,
    build: Build,
    targets: list[Target],
    builder: Builder,
) -> list[Artifact]:
    """Build every target with at most ctx.parallelism units in flight.

    Results land in slots indexed by target position, so the returned list
    follows target order regardless of completion order. After the first
    failure no new unit starts, running units finish, and the first recorded
    error is raised; nothing is returned in that case.
    """
    if ctx.parallelism < 1:
        raise ValueError(f"parallelism must be positive, got {ctx.parallelism}")

    slots: list[Artifact | None] = [None] * len(targets)
    stop = threading.Event()

    def unit(index: int, target: Target) -> None:
        if stop.is_set() or ctx.cancel.cancelled:
            logger.debug("Not starting %s", target)
            return
        logger.info("Building %s for %s", build.id, target)
        try:
            slots[index] = builder.compile(ctx, build, target)
        except BaseException:
            stop.set()
            raise

    first_error: BaseException | None = None
    with ThreadPoolExecutor(max_workers=ctx.parallelism, thread_name_prefix="build") as executor:
        futures = {executor.submit(unit, i, t): t for i, t in enumerate(targets)}
        for future in as_completed(futures):
            exc = future.exception()
            if exc is not None and first_error is None:
                logger.error("Build %s failed for %s: %s", build.id, futures[future], exc)
                first_error = exc

    if first_error is not None:
        raise first_error
    ctx.cancel.raise_if_cancelled()
    return [artifact for artifact in slots if artifact is not None]
