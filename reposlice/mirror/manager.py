"""
Mirror Manager — Slice the source repositories into a destination.

A run:
1. Opens the sources, the target platform and the destination
2. Installs the destination's properties and references
3. Computes the closure of the seeds (plus source companions)
4. Drops components provided by referenced repositories, pruning
   references that provide nothing when asked to
5. Collects the artifact keys of what is left and drops provided keys
6. Writes components, keys and references, then saves the destination

Any error aborts the run before the destination is saved.

## Run ID Format

    R-{YYYYMMDD}T{HHMMSS}-{RANDOM}
    Example: R-20240601T120000-1A2B3C

## Usage

    from reposlice.mirror.manager import MirrorManager

    manager = MirrorManager.from_file(Path("mirror.yaml"))
    result = manager.run(["org.example.app.feature.group"])
    print(result.components_written)
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from ..engine.provided import (
    filter_provided_artifact_keys,
    filter_provided_components,
    removable_locations,
)
from ..engine.slicer import SliceResult, resolve_seeds, slice_components
from ..engine.sources import augment_with_sources
from ..models.component import ArtifactKey, Component, ReferenceKind, RepositoryReference
from ..observability.metrics import MetricsRegistry
from ..persistence.ledger import RunLedger
from ..repository.base import Repository
from ..repository.loader import RepositoryLoader, location_to_path, normalize_location
from ..repository.memory import CompositeRepository, InMemoryRepository
from ..repository.snapshot import GraphSnapshot
from ..repository.store import load_repository, resolve_repository_file, save_repository
from ..validation import MirrorError, ReposliceError, validate_destination_dir
from .config import MirrorConfigFile, build_selection_contexts, load_mirror_config
from .target import TargetPlatform

logger = logging.getLogger(__name__)


@dataclass
class MirrorResult:
    """Result of a mirror run."""

    run_id: str
    started_at: str
    ended_at: Optional[str] = None
    duration_ms: int = 0
    dry_run: bool = False

    # Closure
    roots: List[str] = field(default_factory=list)
    closure_size: int = 0
    sources_added: int = 0
    unresolved: List[str] = field(default_factory=list)

    # Written content
    components_written: List[str] = field(default_factory=list)
    components_provided: int = 0
    artifacts_written: int = 0
    artifacts_provided: int = 0
    missing_artifacts: List[str] = field(default_factory=list)

    # References
    references: List[str] = field(default_factory=list)
    discarded_references: List[str] = field(default_factory=list)

    destination_file: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"R-{ts}-{uuid4().hex[:6].upper()}"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def distinct_locations(references: Sequence[RepositoryReference]) -> List[str]:
    """Reference locations, first occurrence order, each once."""
    return list(dict.fromkeys(r.location for r in references))


class MirrorManager:
    """
    Runs mirror operations for one configuration.

    The loader is session-scoped: every repository, reference or not, is
    opened at most once per manager. Without an explicit registry each
    manager records metrics into its own.
    """

    def __init__(
        self,
        config: MirrorConfigFile,
        loader: Optional[RepositoryLoader] = None,
        ledger: Optional[RunLedger] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        self.config = config
        self.loader = loader or RepositoryLoader(timeout=config.http_timeout)
        self.ledger = ledger
        self.metrics = metrics if metrics is not None else MetricsRegistry()

    @classmethod
    def from_file(cls, path: Path, **kwargs: Any) -> "MirrorManager":
        return cls(load_mirror_config(path), **kwargs)

    # ─── Inputs ─────────────────────────────────────────────

    def open_sources(self) -> List[Repository]:
        return [self.loader.load(location) for location in self.config.source]

    def open_target_platform(self) -> Optional[TargetPlatform]:
        if self.config.target_platform is None:
            return None
        return TargetPlatform.load(self.config.target_platform, self.loader)

    def _source_view(self, sources: List[Repository]) -> Repository:
        if len(sources) == 1:
            return sources[0]
        return CompositeRepository(sources, name="sources")

    def destination_path(self) -> Path:
        path = location_to_path(self.config.destination.location)
        validate_destination_dir(path)
        return path

    def init_destination(self) -> InMemoryRepository:
        """
        Create (or, with ``append``, reopen) the destination repository.

        Extra artifact repository properties are applied in one batch.
        Each configured reference is installed as a metadata and an
        artifact reference.
        """
        descriptor = self.config.destination
        path = self.destination_path()
        location = normalize_location(descriptor.location)

        if self.config.options.append and resolve_repository_file(path).exists():
            destination = load_repository(path, location=location)
            logger.info(
                f"Appending to existing destination {location} "
                f"({len(destination.query())} component(s))"
            )
        else:
            destination = InMemoryRepository(location=location)

        if descriptor.name:
            destination.name = descriptor.name

        if descriptor.extra_artifact_repository_properties:
            destination.set_properties(descriptor.extra_artifact_repository_properties)

        references: List[RepositoryReference] = []
        for ref in descriptor.all_references():
            ref_location = normalize_location(ref.location)
            for kind in (ReferenceKind.METADATA, ReferenceKind.ARTIFACT):
                references.append(
                    RepositoryReference(
                        location=ref_location, kind=kind, name=ref.name, enabled=ref.enabled
                    )
                )
        destination.add_references(references)
        return destination

    # ─── Closure ────────────────────────────────────────────

    def slice(
        self,
        seeds: Optional[Sequence[str]] = None,
        sources: Optional[List[Repository]] = None,
        target: Optional[TargetPlatform] = None,
    ) -> SliceResult:
        """
        Closure of ``seeds`` (default: the configured seeds).

        Without any seed every source component is a root. With
        ``include_all_source`` and a target platform, source companions
        are added to the result.
        """
        if sources is None:
            sources = self.open_sources()
        if target is None:
            target = self.open_target_platform()

        snapshot = GraphSnapshot.from_repository(self._source_view(sources))
        specs = list(seeds) if seeds else list(self.config.seeds)
        roots = resolve_seeds(snapshot, specs) if specs else list(snapshot)

        result = slice_components(
            snapshot,
            roots,
            build_selection_contexts(self.config),
            self.config.effective_slicing(),
            fallback=target.snapshot if target is not None else None,
        )

        if self.config.options.include_all_source and target is not None:
            augmented = augment_with_sources(
                result.components, target.metadata.components_in_order()
            )
            result.sources = sorted(augmented - result.components, key=lambda c: (c.id, c.version))
            result.components = augmented
        return result

    # ─── Artifacts ──────────────────────────────────────────

    def collect_artifact_keys(
        self,
        components: Sequence[Component],
        artifact_view: Repository,
    ) -> Tuple[List[ArtifactKey], List[ArtifactKey]]:
        """
        Artifact keys of ``components``, split into available and missing.

        Keys keep component order, each listed once.
        """
        wanted: List[ArtifactKey] = list(
            dict.fromkeys(key for component in components for key in component.artifacts)
        )
        available = [k for k in wanted if artifact_view.contains_artifact_key(k)]
        missing = [k for k in wanted if not artifact_view.contains_artifact_key(k)]
        return available, missing

    # ─── Run ────────────────────────────────────────────────

    def run(self, seeds: Optional[Sequence[str]] = None, dry_run: bool = False) -> MirrorResult:
        """
        Execute one mirror run.

        Args:
            seeds: Seed specs (``id`` or ``id/version``); configured seeds when empty
            dry_run: Compute everything but don't save the destination

        Returns:
            MirrorResult with run details

        Raises:
            ReposliceError: Any failure; the destination is not saved
        """
        start_time = time.time()
        run_id = generate_run_id()
        extra = {"run_id": run_id}
        result = MirrorResult(run_id=run_id, started_at=_utc_now_iso(), dry_run=dry_run)
        seed_specs = list(seeds) if seeds else list(self.config.seeds)

        logger.info(
            f"{'═' * 50}\n"
            f"  Starting Mirror Run {run_id}\n"
            f"  ├─ Sources: {len(self.config.source)}\n"
            f"  ├─ Destination: {self.config.destination.location}\n"
            f"  ├─ Seeds: {', '.join(seed_specs) or '(all components)'}\n"
            f"  └─ Mode: {'DRY RUN' if dry_run else 'WRITE'}\n"
            f"{'─' * 50}",
            extra=extra,
        )
        self.metrics.increment("mirror_runs_total")
        if self.ledger:
            self.ledger.emit_run_start(
                run_id,
                sources=list(self.config.source),
                destination=self.config.destination.location,
                seeds=seed_specs,
                dry_run=dry_run,
            )

        try:
            self._execute(result, seed_specs, dry_run)
        except ReposliceError as e:
            result.errors.append(str(e))
            self.metrics.increment("mirror_errors_total")
            self._finish(result, start_time, status="failed", error=str(e))
            logger.error(f"Mirror run {run_id} failed: {e}", extra=extra)
            raise

        self._finish(result, start_time, status="ok")
        logger.info(
            f"{'─' * 50}\n"
            f"  Mirror Run {run_id} complete\n"
            f"  ├─ Closure: {result.closure_size} component(s), {len(result.unresolved)} unresolved\n"
            f"  ├─ Written: {len(result.components_written)} component(s), "
            f"{result.artifacts_written} artifact(s)\n"
            f"  ├─ Provided elsewhere: {result.components_provided} component(s), "
            f"{result.artifacts_provided} artifact(s)\n"
            f"  ├─ References: {len(result.references)} kept, "
            f"{len(result.discarded_references)} dropped\n"
            f"  └─ Duration: {result.duration_ms}ms\n"
            f"{'═' * 50}",
            extra=extra,
        )
        return result

    def _execute(self, result: MirrorResult, seed_specs: List[str], dry_run: bool) -> None:
        options = self.config.options

        # --- Phase 1: Inputs and destination ---
        sources = self.open_sources()
        target = self.open_target_platform()
        destination = self.init_destination()
        destination_path = self.destination_path()

        # --- Phase 2: Closure ---
        slice_result = self.slice(seed_specs, sources=sources, target=target)
        components = slice_result.sorted_components()

        result.roots = [str(c) for c in slice_result.roots]
        result.unresolved = [str(u) for u in slice_result.unresolved]
        result.closure_size = len(components)
        result.sources_added = len(slice_result.sources)

        self.metrics.set_gauge("closure_components", result.closure_size)
        self.metrics.set_gauge("unresolved_requirements", len(result.unresolved))
        if self.ledger:
            self.ledger.emit_closure_computed(
                result.run_id,
                roots=len(result.roots),
                components=result.closure_size,
                sources_added=result.sources_added,
                unresolved=result.unresolved,
            )

        filtering = options.filter_provided and bool(destination.get_references())

        # --- Phase 3: Provided components ---
        if filtering:
            removable = set()
            if options.add_only_providing_repo_references:
                removable = removable_locations(
                    self.config.destination.repository_references,
                    self.config.destination.filterable_repository_references,
                )
            provided = filter_provided_components(components, destination, self.loader, removable)
            components = provided.kept
            result.components_provided = len(provided.removed)
            result.discarded_references = distinct_locations(provided.discarded_references)
            self.metrics.increment("provided_components_total", len(provided.removed))
            if result.discarded_references:
                self.metrics.increment("references_pruned_total", len(result.discarded_references))
                if self.ledger:
                    self.ledger.emit_references_pruned(result.run_id, result.discarded_references)

        # --- Phase 4: Artifact keys ---
        artifact_children = list(sources)
        if target is not None:
            artifact_children.append(target.artifact_repository)
        artifact_view = CompositeRepository(artifact_children, name="artifacts")
        keys, missing = self.collect_artifact_keys(components, artifact_view)

        if missing:
            result.missing_artifacts = [str(k) for k in missing]
            if not options.ignore_errors:
                raise MirrorError(
                    f"{len(missing)} artifact(s) not found in any source repository",
                    items=result.missing_artifacts,
                )
            for key in missing:
                logger.warning(f"Artifact not found, skipping: {key}")

        if filtering:
            provided_keys = filter_provided_artifact_keys(keys, destination, self.loader)
            keys = provided_keys.kept
            result.artifacts_provided = len(provided_keys.removed)
            self.metrics.increment("provided_artifacts_total", len(provided_keys.removed))

        # --- Phase 5: Persist ---
        destination.add_components(components)
        destination.add_artifact_keys(keys)
        result.components_written = [str(c) for c in components]
        result.artifacts_written = len(keys)
        self.metrics.set_gauge("components_written", len(components))
        self.metrics.set_gauge("artifacts_written", len(keys))

        # --- Phase 6: Finalize ---
        result.references = distinct_locations(destination.get_references())
        if result.references:
            logger.info("Adding references to the following repositories:")
            for location in result.references:
                logger.info(f"  {location}")

        if dry_run:
            logger.info("Dry run: destination not saved")
            return
        result.destination_file = str(save_repository(destination, destination_path))

    def _finish(
        self,
        result: MirrorResult,
        start_time: float,
        status: str,
        error: Optional[str] = None,
    ) -> None:
        elapsed = time.time() - start_time
        result.ended_at = _utc_now_iso()
        result.duration_ms = int(elapsed * 1000)
        self.metrics.timing("mirror_duration_seconds", elapsed)
        if self.ledger:
            self.ledger.emit_run_end(
                result.run_id,
                status=status,
                duration_ms=result.duration_ms,
                components=len(result.components_written),
                artifacts=result.artifacts_written,
                error=error,
            )
