"""
Mirror Configuration — Load and validate the mirror YAML file.

A mirror run is described by one YAML document:

    source:
      - ./repos/release
    target_platform:
      location: ./repos/platform
    destination:
      location: ./out/site
      name: Example Site
      extra_artifact_repository_properties:
        publishPackFilesAsSiblings: "true"
      repository_references:
        - location: https://example.org/updates/base
      filterable_repository_references:
        - location: https://example.org/updates/extras
    seeds:
      - org.example.app.feature.group
    environments:
      - {os: linux, ws: gtk, arch: x86_64}
    slicing:
      include_optional_dependencies: false
    options:
      filter_provided: true
      add_only_providing_repo_references: true

Relative locations are resolved against the directory holding the file.

## Environment Variables

- REPOSLICE_FILTER_PROVIDED: overrides options.filter_provided
- REPOSLICE_INCLUDE_ALL_SOURCE: overrides options.include_all_source
- REPOSLICE_HTTP_TIMEOUT: seconds, overrides http_timeout
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..engine.policy import SlicingOptions
from ..models.component import SelectionContext
from ..repository.loader import normalize_location
from ..validation import ConfigurationError, validate_config_file

logger = logging.getLogger(__name__)

TRUE_VALUES = ("true", "1", "yes")
FALSE_VALUES = ("false", "0", "no")


class RepositoryReferenceConfig(BaseModel):
    """A reference the destination should carry."""

    model_config = ConfigDict(extra="forbid")

    location: str
    name: Optional[str] = None
    enabled: bool = True


class DestinationDescriptor(BaseModel):
    """Where the mirror is written and what it points to."""

    model_config = ConfigDict(extra="forbid")

    location: str
    name: Optional[str] = None
    extra_artifact_repository_properties: Dict[str, str] = Field(default_factory=dict)
    # Always kept
    repository_references: List[RepositoryReferenceConfig] = Field(default_factory=list)
    # Dropped when they provide nothing (see options.add_only_providing_repo_references)
    filterable_repository_references: List[RepositoryReferenceConfig] = Field(default_factory=list)

    def all_references(self) -> List[RepositoryReferenceConfig]:
        """Explicit then filterable references, one per location."""
        seen: Dict[str, RepositoryReferenceConfig] = {}
        for ref in [*self.repository_references, *self.filterable_repository_references]:
            seen.setdefault(normalize_location(ref.location), ref)
        return list(seen.values())


class MirrorOptions(BaseModel):
    """Flags controlling what the mirror run writes."""

    model_config = ConfigDict(extra="forbid")

    include_all_source: bool = False
    include_required_bundles: bool = False
    include_required_features: bool = False
    filter_provided: bool = False
    add_only_providing_repo_references: bool = False
    append: bool = False
    ignore_errors: bool = False


class EnvironmentConfig(BaseModel):
    """One target runtime environment."""

    model_config = ConfigDict(extra="forbid")

    os: Optional[str] = None
    ws: Optional[str] = None
    arch: Optional[str] = None
    nl: Optional[str] = None

    def to_properties(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def __str__(self) -> str:
        return "/".join(v for v in (self.os, self.ws, self.arch, self.nl) if v) or "(any)"


class TargetPlatformConfig(BaseModel):
    """Fallback repository used for unresolved requirements and sources."""

    model_config = ConfigDict(extra="forbid")

    location: str
    # Defaults to ``location``
    artifacts: Optional[str] = None


class MirrorConfigFile(BaseModel):
    """The mirror YAML schema."""

    model_config = ConfigDict(extra="forbid")

    source: List[str]
    destination: DestinationDescriptor
    target_platform: Optional[TargetPlatformConfig] = None
    seeds: List[str] = Field(default_factory=list)
    environments: Optional[List[EnvironmentConfig]] = None
    environment: Optional[EnvironmentConfig] = None  # deprecated
    context: Dict[str, str] = Field(default_factory=dict)
    slicing: SlicingOptions = Field(default_factory=SlicingOptions)
    options: MirrorOptions = Field(default_factory=MirrorOptions)
    http_timeout: float = 30.0

    @field_validator("source", mode="before")
    @classmethod
    def _single_source(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("source")
    @classmethod
    def _non_empty_source(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("at least one source repository is required")
        return v

    @field_validator("target_platform", mode="before")
    @classmethod
    def _target_shorthand(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"location": v}
        return v

    def effective_slicing(self) -> SlicingOptions:
        """Slicing options with the mirror's extension flags folded in."""
        return self.slicing.model_copy(
            update={
                "include_required_bundles": self.slicing.include_required_bundles
                or self.options.include_required_bundles,
                "include_required_features": self.slicing.include_required_features
                or self.options.include_required_features,
            }
        )


# --- Loading ---


def _is_relative_path(location: str) -> bool:
    scheme = urlsplit(location).scheme
    if scheme and len(scheme) > 1:
        return False
    return not Path(location).expanduser().is_absolute()


def _resolve(location: str, base: Path) -> str:
    if _is_relative_path(location):
        return str((base / location).resolve())
    return location


def resolve_relative_locations(config: MirrorConfigFile, base: Path) -> MirrorConfigFile:
    """Resolve every relative location against ``base``."""
    destination = config.destination.model_copy(
        update={
            "location": _resolve(config.destination.location, base),
            "repository_references": [
                r.model_copy(update={"location": _resolve(r.location, base)})
                for r in config.destination.repository_references
            ],
            "filterable_repository_references": [
                r.model_copy(update={"location": _resolve(r.location, base)})
                for r in config.destination.filterable_repository_references
            ],
        }
    )
    target = None
    if config.target_platform is not None:
        target = TargetPlatformConfig(
            location=_resolve(config.target_platform.location, base),
            artifacts=(
                _resolve(config.target_platform.artifacts, base)
                if config.target_platform.artifacts
                else None
            ),
        )
    return config.model_copy(
        update={
            "source": [_resolve(s, base) for s in config.source],
            "destination": destination,
            "target_platform": target,
        }
    )


def _env_flag(environ: Mapping[str, str], name: str) -> Optional[bool]:
    raw = environ.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigurationError(f"Expected a boolean, got {raw!r}", field=name)


def apply_env_overrides(
    config: MirrorConfigFile,
    environ: Optional[Mapping[str, str]] = None,
) -> MirrorConfigFile:
    """Apply REPOSLICE_* environment overrides."""
    env = os.environ if environ is None else environ

    option_updates: Dict[str, bool] = {}
    filter_provided = _env_flag(env, "REPOSLICE_FILTER_PROVIDED")
    if filter_provided is not None:
        option_updates["filter_provided"] = filter_provided
    include_all_source = _env_flag(env, "REPOSLICE_INCLUDE_ALL_SOURCE")
    if include_all_source is not None:
        option_updates["include_all_source"] = include_all_source

    updates: Dict[str, Any] = {}
    if option_updates:
        logger.debug(f"Option overrides from environment: {option_updates}")
        updates["options"] = config.options.model_copy(update=option_updates)

    timeout = env.get("REPOSLICE_HTTP_TIMEOUT")
    if timeout:
        try:
            updates["http_timeout"] = float(timeout)
        except ValueError:
            raise ConfigurationError(
                f"Expected a number of seconds, got {timeout!r}", field="REPOSLICE_HTTP_TIMEOUT"
            )

    return config.model_copy(update=updates) if updates else config


def _format_validation_error(e: ValidationError) -> str:
    problems = []
    for err in e.errors():
        where = ".".join(str(p) for p in err["loc"]) or "(root)"
        problems.append(f"{where}: {err['msg']}")
    return "; ".join(problems)


def parse_mirror_config(data: Any, base: Optional[Path] = None) -> MirrorConfigFile:
    """Validate raw YAML data."""
    if not isinstance(data, dict):
        raise ConfigurationError("Mirror configuration must be a mapping")
    try:
        config = MirrorConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid mirror configuration: {_format_validation_error(e)}")
    if base is not None:
        config = resolve_relative_locations(config, base)
    return config


def load_mirror_config(
    path: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> MirrorConfigFile:
    """
    Load a mirror configuration file.

    Args:
        path: Path to the YAML file
        environ: Environment used for overrides (default: os.environ)

    Returns:
        Validated configuration with locations resolved

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(path)
    validate_config_file(path)

    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")

    config = parse_mirror_config(data, base=path.resolve().parent)
    config = apply_env_overrides(config, environ)
    logger.debug(
        f"Mirror config loaded from {path}: {len(config.source)} source(s), "
        f"{len(config.seeds)} seed(s)"
    )
    return config


# --- Selection contexts ---

_OS_NAMES = {"darwin": "macosx", "windows": "win32", "linux": "linux"}
_WS_NAMES = {"macosx": "cocoa", "win32": "win32", "linux": "gtk"}
_ARCH_NAMES = {"amd64": "x86_64", "x86_64": "x86_64", "arm64": "aarch64", "aarch64": "aarch64"}


def running_environment() -> EnvironmentConfig:
    """The environment of the machine running the build."""
    system = platform.system().lower()
    os_name = _OS_NAMES.get(system, system)
    machine = platform.machine().lower()
    return EnvironmentConfig(
        os=os_name,
        ws=_WS_NAMES.get(os_name),
        arch=_ARCH_NAMES.get(machine, machine or None),
    )


def resolve_environments(config: MirrorConfigFile) -> List[EnvironmentConfig]:
    """
    The target environments of a run.

    An explicitly empty ``environments`` list disables environment
    filtering. Leaving both keys out falls back to the running platform.
    """
    if config.environment is not None:
        if config.environments is not None:
            raise ConfigurationError(
                "Deprecated 'environment' cannot be combined with 'environments'",
                field="environment",
            )
        logger.warning("The 'environment' key is deprecated; use 'environments' instead")
        return [config.environment]

    if config.environments is not None:
        return list(config.environments)

    implicit = running_environment()
    logger.warning(
        f"No explicit target runtime environment configuration. Build is platform dependent. "
        f"Using {implicit}"
    )
    return [implicit]


def build_selection_contexts(config: MirrorConfigFile) -> List[SelectionContext]:
    """One SelectionContext per environment, each extended by ``context``."""
    environments = resolve_environments(config)
    if not environments:
        return [SelectionContext.from_properties(config.context)]
    return [
        SelectionContext.from_properties({**env.to_properties(), **config.context})
        for env in environments
    ]
