"""
Repository File Store — JSON repository backend.

A repository on disk is one JSON document, either at the given path
(``*.json``) or as ``repository.json`` inside the given directory:

    {
        "version": 1,
        "name": "Release 2024-06",
        "properties": {"publisher": "example"},
        "references": [
            {"location": "https://example.org/updates", "kind": "metadata"}
        ],
        "components": [
            {
                "id": "org.example.app",
                "version": "1.0.0",
                "filter": "(os=linux)",
                "requires": [{"name": "org.example.lib", "range": "[1.0,2.0)"}],
                "artifacts": [{"id": "org.example.app", "version": "1.0.0"}]
            }
        ],
        "artifacts": [{"classifier": "binary", "id": "org.example.app", "version": "1.0.0"}]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.component import (
    COMPONENT_NAMESPACE,
    ArtifactKey,
    Capability,
    Component,
    ReferenceKind,
    RepositoryReference,
    Requirement,
)
from ..models.filters import Filter
from ..models.version import Version, VersionRange
from .base import Repository
from .memory import InMemoryRepository

logger = logging.getLogger(__name__)

REPOSITORY_FILE = "repository.json"
SCHEMA_VERSION = 1


# --- Document schema ---


class CapabilityDoc(BaseModel):
    namespace: str
    name: str
    version: str = "0.0.0"


class RequirementDoc(BaseModel):
    namespace: str = COMPONENT_NAMESPACE
    name: str
    range: Optional[str] = None
    min: int = 1
    max: int = 1
    filter: Optional[str] = None


class ArtifactKeyDoc(BaseModel):
    classifier: str = "binary"
    id: str
    version: str


class ComponentDoc(BaseModel):
    id: str
    version: str
    group: bool = False
    filter: Optional[str] = None
    provides: List[CapabilityDoc] = Field(default_factory=list)
    requires: List[RequirementDoc] = Field(default_factory=list)
    artifacts: List[ArtifactKeyDoc] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)


class ReferenceDoc(BaseModel):
    location: str
    kind: ReferenceKind = ReferenceKind.METADATA
    name: Optional[str] = None
    enabled: bool = True


class RepositoryDocument(BaseModel):
    """The repository.json schema."""

    version: int = SCHEMA_VERSION
    name: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)
    references: List[ReferenceDoc] = Field(default_factory=list)
    components: List[ComponentDoc] = Field(default_factory=list)
    artifacts: List[ArtifactKeyDoc] = Field(default_factory=list)


# --- Conversion ---


def _key_from_doc(doc: ArtifactKeyDoc) -> ArtifactKey:
    return ArtifactKey(doc.classifier, doc.id, Version.parse(doc.version))


def _key_to_doc(key: ArtifactKey) -> ArtifactKeyDoc:
    return ArtifactKeyDoc(classifier=key.classifier, id=key.id, version=str(key.version))


def component_from_doc(doc: ComponentDoc) -> Component:
    """Build a Component; malformed versions or filters raise ConfigurationError."""
    return Component(
        id=doc.id,
        version=Version.parse(doc.version),
        provides=tuple(
            Capability(c.namespace, c.name, Version.parse(c.version)) for c in doc.provides
        ),
        requires=tuple(
            Requirement(
                namespace=r.namespace,
                name=r.name,
                range=VersionRange.parse(r.range),
                min=r.min,
                max=r.max,
                filter=Filter.parse_optional(r.filter),
            )
            for r in doc.requires
        ),
        filter=Filter.parse_optional(doc.filter),
        group=doc.group,
        artifacts=tuple(_key_from_doc(a) for a in doc.artifacts),
        properties=doc.properties,
    )


def component_to_doc(component: Component) -> ComponentDoc:
    return ComponentDoc(
        id=component.id,
        version=str(component.version),
        group=component.group,
        filter=component.filter.text if component.filter else None,
        # The own-id capability is implied, so it is not written out
        provides=[
            CapabilityDoc(namespace=c.namespace, name=c.name, version=str(c.version))
            for c in component.provides
            if not (c.namespace == COMPONENT_NAMESPACE and c.name == component.id)
        ],
        requires=[
            RequirementDoc(
                namespace=r.namespace,
                name=r.name,
                range=str(r.range),
                min=r.min,
                max=r.max,
                filter=r.filter.text if r.filter else None,
            )
            for r in component.requires
        ],
        artifacts=[_key_to_doc(k) for k in component.artifacts],
        properties=dict(component.properties),
    )


def document_to_repository(doc: RepositoryDocument, location: str) -> InMemoryRepository:
    return InMemoryRepository(
        location=location,
        name=doc.name,
        components=[component_from_doc(c) for c in doc.components],
        artifact_keys=[_key_from_doc(a) for a in doc.artifacts],
        references=[
            RepositoryReference(location=r.location, kind=r.kind, name=r.name, enabled=r.enabled)
            for r in doc.references
        ],
        properties=doc.properties,
    )


def repository_to_document(repository: Repository) -> RepositoryDocument:
    return RepositoryDocument(
        name=repository.name if repository.name != repository.location else None,
        properties=dict(repository.properties),
        references=[
            ReferenceDoc(location=r.location, kind=r.kind, name=r.name, enabled=r.enabled)
            for r in repository.get_references()
        ],
        components=[component_to_doc(c) for c in repository.components_in_order()],
        artifacts=[_key_to_doc(k) for k in repository.artifact_keys_in_order()],
    )


# --- Files ---


def resolve_repository_file(path: Path) -> Path:
    """A ``.json`` path is used as is; anything else is a directory."""
    path = Path(path)
    if path.suffix == ".json":
        return path
    return path / REPOSITORY_FILE


def parse_repository(data: Dict[str, Any], location: str) -> InMemoryRepository:
    """Validate raw JSON data and build the repository."""
    doc = RepositoryDocument.model_validate(data or {})
    if doc.version > SCHEMA_VERSION:
        logger.warning(f"{location}: schema version {doc.version} is newer than {SCHEMA_VERSION}")
    return document_to_repository(doc, location)


def load_repository(path: Path, location: Optional[str] = None) -> InMemoryRepository:
    """
    Load a repository from disk.

    Raises:
        FileNotFoundError: If the repository file doesn't exist
        ValueError: If the file is not valid JSON or violates the schema
        ConfigurationError: If a version or filter inside is malformed
    """
    file_path = resolve_repository_file(path)
    logger.debug(f"Loading repository from {file_path}")
    with file_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    repository = parse_repository(data, location or Path(path).resolve().as_uri())
    logger.debug(
        f"Repository loaded: {len(repository.query())} components, "
        f"{len(repository.query_artifact_keys())} artifacts"
    )
    return repository


def save_repository(repository: Repository, path: Path) -> Path:
    """
    Save a repository to disk.

    Uses atomic write (write to temp, then rename) so a failed run never
    leaves a half-written repository behind.
    """
    file_path = resolve_repository_file(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    temp_path = file_path.with_suffix(".tmp")
    try:
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(repository_to_document(repository).model_dump(mode="json"), f, indent=2)
            f.write("\n")
        temp_path.replace(file_path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Repository saved: {len(repository.query())} components → {file_path}")
    return file_path
