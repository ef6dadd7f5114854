"""Snapshot/release mode resolution."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

logger = logging.getLogger(__name__)


class RepositoryState(Protocol):
    """What the mode resolver needs to know about the repository."""

    def is_clean(self, exclude: Iterable[str] = ()) -> bool: ...

    def current_tag(self) -> str | None: ...


def resolve_snapshot(
    repo: RepositoryState,
    *,
    explicit: bool,
    auto: bool,
    exclude: Iterable[str] = (),
) -> bool:
    """Decide whether this run is a snapshot.

    An explicit request always wins. Otherwise, with auto-snapshot enabled, a
    dirty working tree or a HEAD without a release tag makes it a snapshot.
    Repository errors propagate; there is no fallback mode.
    """
    if explicit:
        logger.debug("Snapshot requested explicitly")
        return True
    if not auto:
        return False

    if not repo.is_clean(exclude):
        logger.info("Working tree is dirty; running as a snapshot")
        return True
    if repo.current_tag() is None:
        logger.info("No release tag at HEAD; running as a snapshot")
        return True
    return False
