"""
Target Platform — The full set of components a build can resolve against.

The source repositories are what gets mirrored; the target platform is
consulted only when a mandatory requirement finds nothing in the source,
and as the place source companions and artifact keys are looked up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..repository.base import Repository
from ..repository.loader import RepositoryLoader
from ..repository.snapshot import GraphSnapshot
from .config import TargetPlatformConfig

logger = logging.getLogger(__name__)


@dataclass
class TargetPlatform:
    """Component index plus the artifact repository that backs it."""

    metadata: Repository
    artifacts: Optional[Repository] = None
    snapshot: GraphSnapshot = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.snapshot = GraphSnapshot.from_repository(self.metadata)

    @property
    def artifact_repository(self) -> Repository:
        return self.artifacts if self.artifacts is not None else self.metadata

    @classmethod
    def load(cls, config: TargetPlatformConfig, loader: RepositoryLoader) -> "TargetPlatform":
        metadata = loader.load(config.location)
        artifacts = loader.load(config.artifacts) if config.artifacts else None
        platform = cls(metadata=metadata, artifacts=artifacts)
        logger.info(
            f"Target platform: {len(platform.snapshot)} component(s) from {metadata.location}"
        )
        return platform
