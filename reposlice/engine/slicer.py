"""
Slicer — Compute the closure of components reachable from the roots.

The closure is the fixed point of:

    result := applicable roots
    repeat: for every member, for every applicable requirement,
            add the selected candidates
    until nothing new is added

Which components and requirements count is decided entirely by the
SlicePolicy (see policy.py). The traversal itself has no knobs.

## Usage

    from reposlice.engine.slicer import slice_components

    result = slice_components(snapshot, seeds, contexts, options)
    for component in result.sorted_components():
        print(component)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models.component import Component, Requirement, SelectionContext
from ..models.version import Version
from ..repository.snapshot import GraphSnapshot
from ..validation import ConfigurationError
from .policy import SlicePolicy, SlicingOptions, build_policy, describe_contexts

logger = logging.getLogger(__name__)


@dataclass
class UnresolvedRequirement:
    """A mandatory requirement nothing could satisfy."""

    component: Component
    requirement: Requirement

    def __str__(self) -> str:
        return f"{self.component} -> {self.requirement}"


@dataclass
class SliceResult:
    """Result of a closure computation."""

    components: Set[Component] = field(default_factory=set)
    roots: List[Component] = field(default_factory=list)
    unresolved: List[UnresolvedRequirement] = field(default_factory=list)
    # Source companions added after the fixed point; also in ``components``
    sources: List[Component] = field(default_factory=list)

    def sorted_components(self) -> List[Component]:
        return sorted(self.components, key=lambda c: (c.id, c.version))

    def __contains__(self, component: object) -> bool:
        return component in self.components

    def __len__(self) -> int:
        return len(self.components)


def parse_seed(spec: str) -> Tuple[str, Optional[Version]]:
    """Split ``id`` or ``id/version`` into its parts."""
    text = spec.strip()
    if not text:
        raise ConfigurationError("Empty seed specification", field="seeds")
    if "/" in text:
        component_id, _, version = text.partition("/")
        return component_id.strip(), Version.parse(version)
    return text, None


def resolve_seeds(snapshot: GraphSnapshot, specs: Iterable[str]) -> List[Component]:
    """
    Resolve seed specifications against a snapshot.

    A bare id picks the highest version present. Unknown seeds are a
    configuration error, reported all at once.
    """
    seeds: List[Component] = []
    missing: List[str] = []
    for spec in specs:
        component_id, version = parse_seed(spec)
        found = snapshot.with_id(component_id)
        if version is not None:
            found = [c for c in found if c.version == version]
        if not found:
            missing.append(spec)
            continue
        seeds.append(max(found, key=lambda c: c.version))

    if missing:
        raise ConfigurationError(
            f"Seed components not found in source: {', '.join(missing)}",
            field="seeds",
        )
    return seeds


def select_roots(
    snapshot: GraphSnapshot,
    seeds: Sequence[Component],
    options: SlicingOptions,
) -> List[Component]:
    """
    Choose the roots of the traversal.

    Explicit seeds are always roots. In greedy mode every top-level
    component of the snapshot (one nothing else requires) is added.
    """
    roots: List[Component] = list(dict.fromkeys(seeds))
    if options.everything_greedy:
        known = set(roots)
        for component in snapshot.resolve(snapshot.top_level()):
            if component not in known:
                roots.append(component)
                known.add(component)
    return roots


def compute_closure(roots: Iterable[Component], policy: SlicePolicy) -> SliceResult:
    """Run the traversal to its fixed point."""
    members: Dict[Tuple[str, Version], Component] = {}
    worklist: Deque[Component] = deque()
    result = SliceResult()

    for root in roots:
        result.roots.append(root)
        if root.key in members or not policy.is_component_applicable(root):
            continue
        members[root.key] = root
        worklist.append(root)

    while worklist:
        component = worklist.popleft()
        for requirement in component.requires:
            if not policy.is_requirement_applicable(component, requirement):
                continue

            picked = policy.select_candidates(requirement)
            if not picked:
                if requirement.min > 0:
                    result.unresolved.append(UnresolvedRequirement(component, requirement))
                continue

            for candidate in picked:
                if candidate.key not in members:
                    members[candidate.key] = candidate
                    worklist.append(candidate)

    result.components = set(members.values())
    return result


def slice_components(
    snapshot: GraphSnapshot,
    seeds: Sequence[Component],
    contexts: Sequence[SelectionContext],
    options: SlicingOptions,
    fallback: Optional[GraphSnapshot] = None,
) -> SliceResult:
    """Build the policy, pick the roots and compute the closure."""
    policy = build_policy(options, contexts, snapshot, fallback)
    roots = select_roots(snapshot, seeds, options)

    logger.info(
        f"Slicing {len(snapshot)} components from {len(roots)} root(s) "
        f"[contexts={describe_contexts(contexts) or ['(default)']}, "
        f"filtering={'on' if policy.consider_filter else 'off'}]"
    )

    result = compute_closure(roots, policy)

    for unresolved in result.unresolved:
        logger.warning(f"Unresolved requirement: {unresolved}")

    logger.info(
        f"Closure: {len(result.components)} component(s), "
        f"{len(result.unresolved)} unresolved requirement(s)"
    )
    return result
