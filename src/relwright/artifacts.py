"""Artifacts produced by the pipeline."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .targets import Target


class ArtifactKind(Enum):
    BINARY = "binary"
    UPLOADABLE_BINARY = "uploadable_binary"
    ARCHIVE = "archive"
    CHECKSUM = "checksum"
    SIGNATURE = "signature"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Artifact:
    """A produced file plus the metadata later stages need."""

    name: str
    path: Path
    kind: ArtifactKind
    target: Target | None = None
    build_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)


class Artifacts:
    """Append-only artifact set shared by every stage.

    Appends are guarded by a lock so concurrent writers never observe each
    other's partial writes. Iteration follows insertion order.
    """

    def __init__(self) -> None:
        self._items: list[Artifact] = []
        self._lock = threading.Lock()

    def add(self, artifact: Artifact) -> None:
        with self._lock:
            self._items.append(artifact)

    def extend(self, artifacts: list[Artifact]) -> None:
        with self._lock:
            self._items.extend(artifacts)

    def filter(self, *kinds: ArtifactKind) -> list[Artifact]:
        """Return a snapshot of the artifacts of the given kinds (all when empty)."""
        with self._lock:
            items = list(self._items)
        if not kinds:
            return items
        return [a for a in items if a.kind in kinds]

    def __iter__(self) -> Iterator[Artifact]:
        return iter(self.filter())

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:
        return f"Artifacts(count={len(self)})"
