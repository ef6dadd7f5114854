"""relwright - build, archive, checksum, sign and publish releases from a tagged tree."""

__version__ = "0.1.0"

from .artifacts import Artifact as Artifact
from .artifacts import ArtifactKind as ArtifactKind
from .config import Project as Project
from .context import CancelToken as CancelToken
from .context import Context as Context
from .options import RunOptions as RunOptions
from .options import reconcile as reconcile
from .pipeline import Pipeline as Pipeline
from .run import release as release
from .stage import Outcome as Outcome
from .stage import SkipStage as SkipStage
from .stage import Stage as Stage
from .targets import Target as Target
