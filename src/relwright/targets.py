"""Build targets and build-matrix expansion."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Build

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Target:
    """One (os, arch, variant) combination to build independently."""

    os: str
    arch: str
    variant: str = ""

    def __str__(self) -> str:
        parts = [self.os, self.arch]
        if self.variant:
            parts.append(self.variant)
        return "_".join(parts)


def matrix(build: Build) -> list[Target]:
    """Expand a build's os/arch/variant lists, minus its ignore filters.

    Order follows the cartesian product of the configured lists.
    """
    targets: list[Target] = []
    variants = build.variants or [""]
    for os_name, arch, variant in itertools.product(build.os, build.arch, variants):
        target = Target(os=os_name, arch=arch, variant=variant)
        if any(rule.matches(target) for rule in build.ignore):
            logger.debug("Ignoring target %s for build '%s'", target, build.id)
            continue
        targets.append(target)
    return targets
