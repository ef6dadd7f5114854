"""Pipeline runner: execute an ordered list of stages against one context."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, wait

from pydantic import BaseModel, Field

from .context import Context
from .errors import PipelineCancelled, ReleaseError, StageError
from .stage import Outcome, Stage

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.1
_GRACE_SECONDS = 5.0


class Pipeline(BaseModel):
    """A named, fixed sequence of stages."""

    model_config = {"arbitrary_types_allowed": True}

    name: str = "release"
    stages: list[Stage] = Field(default_factory=list)

    def __iter__(self) -> Iterator[Stage]:  # type: ignore[override]
        return iter(self.stages)

    def run(self, ctx: Context) -> list[tuple[str, Outcome]]:
        """Run every stage in order; the first fatal error aborts the run.

        An interrupt fires the run's cancel token so in-flight work winds
        down, then surfaces as PipelineCancelled. Returns the (stage name,
        outcome) pairs of a completed run.
        """
        logger.debug("Running pipeline '%s' with %d stage(s)", self.name, len(self.stages))
        results: list[tuple[str, Outcome]] = []
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stage")
        future: Future[Outcome] | None = None
        try:
            for stage in self.stages:
                ctx.cancel.raise_if_cancelled()
                future = executor.submit(stage, ctx)
                outcome = self._await(future, stage, ctx)
                results.append((stage.name, outcome))
        except KeyboardInterrupt:
            logger.error("Interrupted; stopping pipeline '%s'", self.name)
            ctx.cancel.cancel("interrupted")
            if future is not None:
                wait([future], timeout=_GRACE_SECONDS)
            raise PipelineCancelled("interrupted") from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Pipeline '%s' completed", self.name)
        return results

    def _await(self, future: Future[Outcome], stage: Stage, ctx: Context) -> Outcome:
        while True:
            done, _ = wait([future], timeout=_POLL_SECONDS)
            if done:
                break
            if ctx.cancel.cancelled:
                logger.error("Cancelling %s: %s", stage.name, ctx.cancel.reason)
                # let running work notice the signal and wind down
                wait([future], timeout=_GRACE_SECONDS)
                ctx.cancel.raise_if_cancelled()

        try:
            return future.result()
        except ReleaseError as exc:
            if exc.stage is None:
                exc.stage = stage.name
            logger.error("%s failed: %s", stage.name, exc)
            raise
        except Exception as exc:
            logger.error("%s failed: %s", stage.name, exc)
            raise StageError(stage.name, exc) from exc
