"""The release stages, in pipeline order."""

from __future__ import annotations

from ..stage import Stage
from .announce import AnnounceStage as AnnounceStage
from .archive import ArchiveStage as ArchiveStage
from .build import BuildStage as BuildStage
from .changelog import ChangelogStage as ChangelogStage
from .checksum import ChecksumStage as ChecksumStage
from .publish import ReleaseStage as ReleaseStage
from .sign import SignStage as SignStage
from .validate import ValidateStage as ValidateStage


def defaults() -> list[Stage]:
    """The fixed release sequence."""
    return [
        ValidateStage(),
        BuildStage(),
        ArchiveStage(),
        ChecksumStage(),
        SignStage(),
        ChangelogStage(),
        ReleaseStage(),
        AnnounceStage(),
    ]
