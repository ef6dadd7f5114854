"""Project configuration: strict models and the HCL loading engine."""

from __future__ import annotations

import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Any, Literal, get_args

import hcl2
import jinja2
import pydantic
from lark.exceptions import LarkError
from pydantic import BaseModel, Field, field_validator, model_validator

from .artifacts import ArtifactKind
from .errors import ConfigError
from .targets import Target

logger = logging.getLogger(__name__)

CONFIG_FILES = (".relwright.hcl", "relwright.hcl")

_STRICT = {"extra": "forbid", "frozen": True}


class TargetFilter(BaseModel):
    """Matches targets to exclude from a build matrix; unset fields match anything."""

    model_config = _STRICT

    os: str | None = None
    arch: str | None = None
    variant: str | None = None

    def matches(self, target: Target) -> bool:
        return (
            (self.os is None or self.os == target.os)
            and (self.arch is None or self.arch == target.arch)
            and (self.variant is None or self.variant == target.variant)
        )


class Build(BaseModel):
    model_config = _STRICT

    id: str = "default"
    main: str = "."
    binary: str = ""
    builder: Literal["zipapp", "command"] = "zipapp"
    entrypoint: str | None = None
    command: list[str] = Field(default_factory=list)
    os: list[str] = Field(default_factory=lambda: ["linux", "darwin", "windows"])
    arch: list[str] = Field(default_factory=lambda: ["amd64", "arm64"])
    variants: list[str] = Field(default_factory=list)
    ignore: list[TargetFilter] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    skip: bool = False

    @model_validator(mode="after")
    def _command_required(self) -> Build:
        if self.builder == "command" and not self.command:
            raise ValueError(f"build '{self.id}' uses the command builder but sets no command")
        return self


class Archive(BaseModel):
    model_config = _STRICT

    id: str = "default"
    builds: list[str] = Field(default_factory=list)
    format: Literal["tar.gz", "zip", "binary"] = "tar.gz"
    name_template: str = "${project_name}_${version}_${target}"
    files: list[str] = Field(default_factory=list)
    wrap_in_directory: bool = False


class Checksum(BaseModel):
    model_config = _STRICT

    name_template: str = "${project_name}_${version}_checksums.txt"
    algorithm: str = "sha256"
    disable: bool = False

    @field_validator("algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        if value not in hashlib.algorithms_available:
            raise ValueError(f"unknown checksum algorithm: '{value}'")
        return value


class Sign(BaseModel):
    model_config = _STRICT

    id: str = "default"
    cmd: str = "gpg"
    args: list[str] = Field(
        default_factory=lambda: ["--output", "${signature}", "--detach-sign", "${artifact}"]
    )
    artifacts: Literal["none", "all", "checksum", "archive"] = "checksum"
    signature: str = "${artifact}.sig"


class SnapshotConfig(BaseModel):
    model_config = _STRICT

    version_template: str = "${tag}-SNAPSHOT-${short_commit}"
    # deprecated alias of version_template
    name_template: str | None = None

    @property
    def template(self) -> str:
        return self.name_template or self.version_template


class ChangelogConfig(BaseModel):
    model_config = _STRICT

    skip: bool = False
    sort: Literal["asc", "desc", ""] = ""
    exclude: list[str] = Field(default_factory=list)

    @field_validator("exclude")
    @classmethod
    def _valid_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"invalid exclude pattern '{pattern}': {exc}") from None
        return value


class Publisher(BaseModel):
    model_config = _STRICT

    name: str = "default"
    kind: Literal["directory", "command"] = "directory"
    path: str | None = None
    cmd: list[str] = Field(default_factory=list)
    kinds: list[str] = Field(
        default_factory=lambda: ["archive", "uploadable_binary", "checksum", "signature"]
    )

    @field_validator("kinds")
    @classmethod
    def _known_kinds(cls, value: list[str]) -> list[str]:
        known = {str(k) for k in ArtifactKind}
        for kind in value:
            if kind not in known:
                raise ValueError(f"unknown artifact kind: '{kind}'")
        return value

    @model_validator(mode="after")
    def _target_required(self) -> Publisher:
        if self.kind == "directory" and not self.path:
            raise ValueError(f"publisher '{self.name}' needs a path")
        if self.kind == "command" and not self.cmd:
            raise ValueError(f"publisher '{self.name}' needs a cmd")
        return self


class Announcer(BaseModel):
    model_config = _STRICT

    name: str = "default"
    cmd: list[str] = Field(min_length=1)
    message_template: str = "${project_name} ${tag} is out!"


class Project(BaseModel):
    """Immutable description of what to build, how to name it and where to publish."""

    model_config = _STRICT

    project_name: str
    dist: str = "dist"
    env: dict[str, str] = Field(default_factory=dict)
    builds: list[Build] = Field(default_factory=lambda: [Build()])
    archives: list[Archive] = Field(default_factory=list)
    checksum: Checksum = Field(default_factory=Checksum)
    signs: list[Sign] = Field(default_factory=list)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    changelog: ChangelogConfig = Field(default_factory=ChangelogConfig)
    publishers: list[Publisher] = Field(default_factory=list)
    announcers: list[Announcer] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> Project:
        for kind, ids in (
            ("build", [b.id for b in self.builds]),
            ("archive", [a.id for a in self.archives]),
            ("sign", [s.id for s in self.signs]),
        ):
            dupes = sorted({i for i in ids if ids.count(i) > 1})
            if dupes:
                raise ValueError(f"duplicate {kind} id: {', '.join(dupes)}")
        return self

    def deprecations(self) -> list[str]:
        """Return the deprecated fields this configuration still uses."""
        found: list[str] = []
        if self.snapshot.name_template is not None:
            found.append("snapshot.name_template: use snapshot.version_template instead")
        return found


# -- Loading --

# hcl block name -> (Project field, label attribute or None for single blocks, block model)
_BLOCKS: dict[str, tuple[str, str | None, type[BaseModel]]] = {
    "build": ("builds", "id", Build),
    "archive": ("archives", "id", Archive),
    "sign": ("signs", "id", Sign),
    "publisher": ("publishers", "name", Publisher),
    "announcer": ("announcers", "name", Announcer),
    "checksum": ("checksum", None, Checksum),
    "snapshot": ("snapshot", None, SnapshotConfig),
    "changelog": ("changelog", None, ChangelogConfig),
}

_FIELD_TO_BLOCK = {field: block for block, (field, _, _) in _BLOCKS.items()}


def find(cwd: Path) -> Path | None:
    """Return the first well-known configuration file in cwd, if any."""
    for name in CONFIG_FILES:
        candidate = cwd / name
        if candidate.is_file():
            return candidate
    return None


def render(file: Path, *, context: dict[str, Any] | None = None) -> str:
    """Read a configuration file and render it as a Jinja2 template."""
    try:
        text = file.read_text()
    except OSError as exc:
        raise ConfigError(f"cannot read configuration: {exc.strerror}", path=file) from exc
    ctx = context if context is not None else {"env": dict(os.environ)}
    env = jinja2.Environment(
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        return env.from_string(text).render(ctx)
    except jinja2.TemplateError as exc:
        raise ConfigError(str(exc), path=file) from exc


def load(
    file: Path | None = None,
    *,
    cwd: Path | None = None,
    context: dict[str, Any] | None = None,
) -> Project:
    """Load and strictly validate the project configuration.

    When no file is given the well-known names are looked up in cwd; when
    none exists the defaults are used, named after the cwd.
    """
    cwd = cwd or Path.cwd()
    if file is None:
        file = find(cwd)
    if file is None:
        logger.warning("No configuration file found in %s; using defaults", cwd)
        return Project(project_name=cwd.name)

    logger.debug("Loading configuration from %s", file)
    text = render(file, context=context)
    try:
        data = hcl2.loads(text)
    except (LarkError, ValueError) as exc:
        raise ConfigError(f"invalid HCL: {exc}", path=file) from exc

    data = normalize(data, path=file)
    data.setdefault("project_name", cwd.name)
    try:
        return Project(**data)
    except pydantic.ValidationError as exc:
        raise _config_error(exc, text, file) from None


def _unquote(label: str) -> str:
    return label.strip('"')


def _is_labelled(block: dict[str, Any], model: type[BaseModel]) -> bool:
    """True for {label: attrs}; an unlabelled block whose only attribute is a map looks alike."""
    if len(block) != 1:
        return False
    key, value = next(iter(block.items()))
    if not isinstance(value, dict):
        return False
    return key.startswith('"') or key not in model.model_fields


def normalize(data: dict[str, Any], *, path: Path | None = None) -> dict[str, Any]:
    """Reshape hcl2's block lists into the keyword arguments of Project.

    Unknown keys are passed through untouched so validation reports them.
    """
    out: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _BLOCKS:
            out[key] = value
            continue

        field, label_attr, model = _BLOCKS[key]
        blocks = value if isinstance(value, list) else [value]
        if label_attr is None:
            if len(blocks) > 1:
                raise ConfigError(f"block '{key}' may only appear once", path=path)
            out[field] = dict(blocks[0])
            continue

        items: list[dict[str, Any]] = []
        for block in blocks:
            if _is_labelled(block, model):
                for label, attrs in block.items():
                    items.append({label_attr: _unquote(label), **attrs})
            else:
                items.append(dict(block))
        out[field] = items
    return out


def _owner_type(loc: tuple[Any, ...]) -> str:
    """Walk a validation error location to the model type that holds its last element."""
    owner: type[BaseModel] = Project
    for part in loc[:-1]:
        if isinstance(part, int):
            continue
        info = owner.model_fields.get(str(part))
        if info is None:
            break
        for candidate in (info.annotation, *get_args(info.annotation)):
            if isinstance(candidate, type) and issubclass(candidate, BaseModel):
                owner = candidate
                break
        else:
            break
    return owner.__name__


def _line_of(text: str, name: str) -> int | None:
    """Line of the first attribute or block called name, including inline object keys."""
    pattern = re.compile(
        rf"(?:^|[{{,])[ \t]*{re.escape(name)}[ \t]*(=|\{{|\")",
        re.MULTILINE,
    )
    match = pattern.search(text)
    if match is None:
        return None
    return text.count("\n", 0, match.start()) + 1


def _locate(text: str, loc: tuple[Any, ...]) -> int | None:
    """Line of the innermost element of loc found in text, walking outwards."""
    for part in reversed(loc):
        if not isinstance(part, str) or part == "__root__":
            continue
        line = _line_of(text, _FIELD_TO_BLOCK.get(part, part))
        if line is not None:
            return line
    return None


def _config_error(exc: pydantic.ValidationError, text: str, file: Path) -> ConfigError:
    """Translate the first pydantic error into a ConfigError with line detail."""
    error = exc.errors()[0]
    loc = tuple(error["loc"])
    name = str(loc[-1]) if loc else ""
    line = _locate(text, loc)
    type_name = _owner_type(loc)

    if error["type"] == "extra_forbidden":
        message = f"field {name} not found in type {type_name}"
    else:
        where = ".".join(str(p) for p in loc) or type_name
        message = f"{where}: {error['msg']}"
    return ConfigError(message, path=file, line=line, field=name, type_name=type_name)
