"""Error taxonomy and process exit codes."""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path


class ErrorCode(IntEnum):
    """Exit codes for the command line front end.

    These values are used as process exit codes and should remain stable.
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    TIMEOUT = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")


class ReleaseError(Exception):
    """Base class for every fatal error raised by a release run."""

    exit_code = ErrorCode.USER_ERROR
    stage: str | None = None


class ConfigError(ReleaseError):
    """The project configuration could not be read or failed validation."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        field: str | None = None,
        type_name: str | None = None,
    ) -> None:
        self.path = path
        self.line = line
        self.field = field
        self.type_name = type_name
        prefix = ""
        if path is not None:
            prefix = f"{path.name}: "
        if line is not None:
            prefix += f"line {line}: "
        super().__init__(prefix + message)


class GitError(ReleaseError):
    """Repository inspection failed (not a repository, git unavailable, ...)."""

    exit_code = ErrorCode.ENV_ERROR

    def __init__(self, command: str, message: str) -> None:
        self.command = command
        self.message = message
        super().__init__(f"git {command}: {message}")


class ValidationError(ReleaseError):
    """A pre-flight check rejected the run."""


class DirtyTreeError(ValidationError):
    def __init__(self, files: list[str]) -> None:
        self.files = files
        listing = "\n".join(f"  {f}" for f in files)
        super().__init__(f"git is currently in a dirty state:\n{listing}")


class DistNotEmptyError(ReleaseError):
    exit_code = ErrorCode.IO_ERROR

    def __init__(self, dist: Path) -> None:
        self.dist = dist
        super().__init__(f"{dist} is not empty, remove it before running or use rm_dist")


class BuildError(ReleaseError):
    """A single build unit failed."""

    exit_code = ErrorCode.BUILD_ERROR

    def __init__(self, message: str, *, target: object = None) -> None:
        self.target = target
        super().__init__(message)


class SourceError(BuildError):
    """A source file failed to parse."""

    def __init__(
        self,
        file: str,
        line: int,
        column: int,
        reason: str,
        *,
        target: object = None,
    ) -> None:
        self.file = file
        self.line = line
        self.column = column
        self.reason = reason
        super().__init__(f"failed to parse {file}:{line}:{column}: {reason}", target=target)


class StageError(ReleaseError):
    """Unexpected failure inside a stage; the message of the cause is kept verbatim."""

    exit_code = ErrorCode.BUILD_ERROR

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(str(cause))


class PipelineTimeout(ReleaseError):
    exit_code = ErrorCode.TIMEOUT

    def __init__(self, timeout: float | None) -> None:
        self.timeout = timeout
        super().__init__(f"release timed out after {timeout}s")


class PipelineCancelled(ReleaseError):
    exit_code = ErrorCode.TIMEOUT

    def __init__(self, reason: str = "cancelled") -> None:
        self.reason = reason
        super().__init__(f"release cancelled: {reason}")


class CommandError(ReleaseError):
    """An external command exited with a failure status."""

    exit_code = ErrorCode.ENV_ERROR

    def __init__(self, command: tuple[str, ...], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(command[:3])
        if len(command) > 3:
            cmd_str += " ..."
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"{cmd_str} failed (exit {returncode}){detail}")
