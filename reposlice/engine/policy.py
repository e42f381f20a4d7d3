"""
Slicing Policy — Decide what the closure follows.

The closure routine in slicer.py is generic. Everything that decides
*which* components and requirements count is bundled here into a
SlicePolicy: three plain functions built from the SlicingOptions and
the selection contexts of the run.

## Component applicability

- Context filtering active (some context holds more than the default
  marker): the component's filter, if any, must match a context.
- Inactive: unfiltered components apply; filtered ones only when
  ``force_filter_to`` is set.

## Requirement applicability

1. Optional requirements (min == 0) need ``include_optional_dependencies``.
2. With ``consider_strict_dependency_only`` the range must pin one version.
3. Filters: same rule as components, and ``follow_only_filtered_requirements``
   rejects requirements without a filter.
4. Group components with ``include_required_bundles`` /
   ``include_required_features`` follow their contained-component
   requirements without the strictness rule (1 and the filter rule still apply).

## Candidate selection

Matches are grouped by component id; each group contributes its highest
versions, at most ``max`` of them. When nothing matches a mandatory
requirement, the fallback snapshot (the target platform) is queried the
same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from ..models.component import (
    COMPONENT_NAMESPACE,
    DEFAULT_CONTEXT_PROPERTY,
    GROUP_SUFFIX,
    Component,
    Requirement,
    SelectionContext,
)
from ..models.filters import Filter
from ..repository.snapshot import GraphSnapshot


class SlicingOptions(BaseModel):
    """Policy flags for the closure engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    include_optional_dependencies: bool = True
    follow_only_filtered_requirements: bool = False
    everything_greedy: bool = False
    force_filter_to: bool = True
    consider_strict_dependency_only: bool = False

    include_required_bundles: bool = False
    include_required_features: bool = False


@dataclass(frozen=True)
class SlicePolicy:
    """The functions the closure routine consults."""

    is_component_applicable: Callable[[Component], bool]
    is_requirement_applicable: Callable[[Component, Requirement], bool]
    select_candidates: Callable[[Requirement], List[Component]]
    consider_filter: bool = False


def is_context_filtering_active(contexts: Sequence[SelectionContext]) -> bool:
    return any(ctx.is_discriminating for ctx in contexts)


def select_highest_per_id(
    snapshot: GraphSnapshot,
    requirement: Requirement,
    is_applicable: Callable[[Component], bool],
) -> List[Component]:
    """
    Highest matching versions per id, at most ``requirement.max`` per id.

    Groups keep the order in which their id first appears in the arena,
    and the sort is stable, so ties resolve to arena order.
    """
    if requirement.max <= 0:
        return []

    groups: Dict[str, List[Component]] = {}
    for component in snapshot.resolve(snapshot.candidates(requirement)):
        if is_applicable(component):
            groups.setdefault(component.id, []).append(component)

    selected: List[Component] = []
    for members in groups.values():
        members.sort(key=lambda c: c.version, reverse=True)
        selected.extend(members[: requirement.max])
    return selected


def build_policy(
    options: SlicingOptions,
    contexts: Sequence[SelectionContext],
    snapshot: GraphSnapshot,
    fallback: Optional[GraphSnapshot] = None,
) -> SlicePolicy:
    """Build the SlicePolicy for one run."""
    contexts = tuple(contexts) or (SelectionContext.from_properties(),)
    consider_filter = is_context_filtering_active(contexts)
    extension = options.include_required_bundles or options.include_required_features

    def matches_context(flt: Filter) -> bool:
        return flt.matches_any(contexts)

    def is_component_applicable(component: Component) -> bool:
        if consider_filter:
            return component.filter is None or matches_context(component.filter)
        return component.filter is None or options.force_filter_to

    def is_contained_component(component: Component, requirement: Requirement) -> bool:
        if not extension or not component.is_group:
            return False
        if requirement.namespace != COMPONENT_NAMESPACE:
            return False
        if requirement.name.endswith(GROUP_SUFFIX):
            return options.include_required_features
        return options.include_required_bundles

    def is_requirement_applicable(component: Component, requirement: Requirement) -> bool:
        if not options.include_optional_dependencies and requirement.min == 0:
            return False

        flt = requirement.filter
        if is_contained_component(component, requirement):
            if options.follow_only_filtered_requirements and flt is None:
                return False
            return not consider_filter or flt is None or matches_context(flt)

        if options.consider_strict_dependency_only and not requirement.is_strict:
            return False

        if consider_filter:
            if options.follow_only_filtered_requirements and flt is None:
                return False
            return flt is None or matches_context(flt)
        if flt is None:
            return not options.follow_only_filtered_requirements
        return options.force_filter_to

    def select_candidates(requirement: Requirement) -> List[Component]:
        picked = select_highest_per_id(snapshot, requirement, is_component_applicable)
        if not picked and requirement.min > 0 and fallback is not None:
            # Some components only exist in the full target platform
            picked = select_highest_per_id(fallback, requirement, is_component_applicable)
        return picked

    return SlicePolicy(
        is_component_applicable=is_component_applicable,
        is_requirement_applicable=is_requirement_applicable,
        select_candidates=select_candidates,
        consider_filter=consider_filter,
    )


def describe_contexts(contexts: Sequence[SelectionContext]) -> List[str]:
    """Render contexts for logs, default marker omitted."""
    rendered: List[str] = []
    for ctx in contexts:
        pairs = [f"{k}={v}" for k, v in sorted(ctx.properties.items()) if k != DEFAULT_CONTEXT_PROPERTY]
        rendered.append(",".join(pairs) or "(default)")
    return rendered
