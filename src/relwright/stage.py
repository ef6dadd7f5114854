"""Stage contract: one unit of pipeline work with a skip/success/fatal outcome."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum

from .context import Context

logger = logging.getLogger(__name__)


class Outcome(Enum):
    SUCCESS = "success"
    SKIP = "skip"

    def __str__(self) -> str:
        return self.value


class SkipStage(Exception):
    """Raised from Stage.run() when a stage finds it has nothing to do."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class Stage(ABC):
    """Base class for every pipeline stage.

    A stage reads its own governing flags from the context; the runner has no
    per-stage knowledge. Any exception other than SkipStage is fatal.
    """

    name: str = "stage"

    def skip(self, ctx: Context) -> str | None:
        """Return a reason to skip this stage, or None to run it."""
        return None

    @abstractmethod
    def run(self, ctx: Context) -> None:
        """Do the stage's work, recording results on ctx."""

    def __call__(self, ctx: Context) -> Outcome:
        reason = self.skip(ctx)
        if reason is not None:
            logger.info("Skipping %s: %s", self.name, reason)
            return Outcome.SKIP
        logger.info("Running %s", self.name)
        try:
            self.run(ctx)
        except SkipStage as skipped:
            logger.info("Skipping %s: %s", self.name, skipped.reason)
            return Outcome.SKIP
        return Outcome.SUCCESS

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
