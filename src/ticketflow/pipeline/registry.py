"""Pipeline step registry with lookup and dependency-ordering APIs."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from enum import Enum

import networkx as nx

from ticketflow.errors import CyclicDependencyError
from ticketflow.pipeline.core import PipelineStep, StepMetadata, step_metadata

log = logging.getLogger(__name__)


def _key(step_id: str) -> str:
    return step_id.casefold()


class _Mark(Enum):
    IN_PROGRESS = "in_progress"
    DONE = "done"


class StepRegistry:
    """
    Catalog of known pipeline steps keyed by case-insensitive step id.

    The registry is populated once at startup and read afterwards, so a single
    instance can back several pipeline runs. It supports:
    - Looking up steps by id regardless of casing
    - Resolving a requested subset into a dependency-respecting order
    - Expanding selections with their transitive dependencies
    - Exporting the dependency graph for diagnostics
    """

    def __init__(self, steps: Iterable[PipelineStep] = ()) -> None:
        self._steps: dict[str, PipelineStep] = {}
        for step in steps:
            self.register(step)

    def register(self, step: PipelineStep) -> None:
        """Register ``step``; an existing step with the same id is replaced."""
        key = _key(step.step_id)
        if key in self._steps:
            log.debug("Step '%s' registered again; last registration wins.", step.step_id)
        self._steps[key] = step

    def get(self, step_id: str) -> PipelineStep | None:
        """
        Retrieve a step by id.

        Parameters
        ----------
        step_id
            Step id to look up (case-insensitive).

        Returns
        -------
        PipelineStep | None
            The step if found, None otherwise.
        """
        return self._steps.get(_key(step_id))

    def __getitem__(self, step_id: str) -> PipelineStep:
        """
        Retrieve a step by id, raising KeyError if not found.

        Returns
        -------
        PipelineStep
            The step instance.

        Raises
        ------
        KeyError
            If the step id is not registered.
        """
        step = self.get(step_id)
        if step is None:
            message = f"Unknown pipeline step: {step_id}"
            raise KeyError(message)
        return step

    def __contains__(self, step_id: object) -> bool:
        return isinstance(step_id, str) and _key(step_id) in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[str]:
        return iter(self.get_all_step_ids())

    def get_all_steps(self) -> list[PipelineStep]:
        """
        Return all registered steps in registration order.

        Returns
        -------
        list[PipelineStep]
            Registered step instances.
        """
        return list(self._steps.values())

    def get_all_step_ids(self) -> list[str]:
        """
        Return the ids of all registered steps in registration order.

        Returns
        -------
        list[str]
            Step ids as declared by the steps themselves.
        """
        return [step.step_id for step in self._steps.values()]

    def list_all(self) -> list[StepMetadata]:
        """
        Return metadata for all registered steps in registration order.

        Returns
        -------
        list[StepMetadata]
            List of step metadata.
        """
        return [step_metadata(step) for step in self._steps.values()]

    def get_deps(self, step_id: str) -> tuple[str, ...]:
        """
        Return the declared direct dependencies of a step.

        Returns
        -------
        tuple[str, ...]
            Dependency ids as declared.
        """
        return tuple(self[step_id].dependencies)

    def expand_with_deps(self, step_ids: Iterable[str]) -> set[str]:
        """
        Expand step ids to include all registered transitive dependencies.

        Unregistered ids are ignored.

        Parameters
        ----------
        step_ids
            Step ids to expand.

        Returns
        -------
        set[str]
            Canonical step ids including transitive dependencies.
        """
        expanded: set[str] = set()
        pending = [step_id for step_id in step_ids if step_id in self]
        while pending:
            step = self[pending.pop()]
            if step.step_id in expanded:
                continue
            expanded.add(step.step_id)
            pending.extend(dep for dep in step.dependencies if dep in self)
        return expanded

    def dependency_graph(self) -> nx.DiGraph:
        """
        Return the dependency graph with an edge from each dependency to its dependent.

        Unregistered dependencies appear as nodes with ``registered=False``.

        Returns
        -------
        nx.DiGraph
            Directed graph keyed by canonical step ids.
        """
        graph = nx.DiGraph()
        for step in self._steps.values():
            graph.add_node(step.step_id, registered=True)
        for step in self._steps.values():
            for dep in step.dependencies:
                target = self.get(dep)
                dep_id = target.step_id if target is not None else dep
                if dep_id not in graph:
                    graph.add_node(dep_id, registered=False)
                graph.add_edge(dep_id, step.step_id)
        return graph

    def find_cycles(self) -> list[tuple[str, ...]]:
        """
        Report every dependency cycle among registered steps.

        Returns
        -------
        list[tuple[str, ...]]
            Sorted members of each strongly connected component forming a cycle.
        """
        graph = self.dependency_graph()
        cycles = [
            tuple(sorted(component))
            for component in nx.strongly_connected_components(graph)
            if len(component) > 1
        ]
        cycles.extend((node,) for node in graph.nodes if graph.has_edge(node, node))
        return sorted(cycles)

    def missing_dependencies(self) -> dict[str, tuple[str, ...]]:
        """
        Map each step to the declared dependencies that are not registered.

        Returns
        -------
        dict[str, tuple[str, ...]]
            Only steps with at least one missing dependency are included.
        """
        missing: dict[str, tuple[str, ...]] = {}
        for step in self._steps.values():
            unknown = tuple(dep for dep in step.dependencies if dep not in self)
            if unknown:
                missing[step.step_id] = unknown
        return missing

    def build_execution_order(self, required_step_ids: Iterable[str]) -> list[PipelineStep]:
        """
        Resolve requested steps into a dependency-respecting execution order.

        Registered dependencies are pulled in even when not requested. Requested
        ids without a registered step, and dependencies that are neither
        requested nor registered, are logged and dropped. Independent steps keep
        the order of ``required_step_ids``.

        Parameters
        ----------
        required_step_ids
            Directly requested step ids; duplicates and casing variants collapse.

        Returns
        -------
        list[PipelineStep]
            Steps ordered so every dependency precedes its dependents.

        Raises
        ------
        CyclicDependencyError
            If a dependency cycle is reachable from the requested steps.
        """
        requested: dict[str, str] = {}
        for step_id in required_step_ids:
            requested.setdefault(_key(step_id), step_id)

        marks: dict[str, _Mark] = {}
        ordered: list[PipelineStep] = []
        for step_id in requested.values():
            if _key(step_id) not in marks:
                self._visit(step_id, requested, marks, ordered)
        return ordered

    def _visit(
        self,
        root: str,
        requested: dict[str, str],
        marks: dict[str, _Mark],
        ordered: list[PipelineStep],
    ) -> None:
        stack: list[tuple[PipelineStep, Iterator[str]]] = []
        self._enter(root, marks, stack)
        while stack:
            step, pending = stack[-1]
            for dep in pending:
                dep_key = _key(dep)
                if dep_key not in requested and dep_key not in self._steps:
                    log.warning(
                        "Dependency '%s' of step '%s' is not registered; ignoring it.",
                        dep,
                        step.step_id,
                    )
                    continue
                mark = marks.get(dep_key)
                if mark is _Mark.IN_PROGRESS:
                    path = [frame.step_id for frame, _ in stack]
                    start = next(
                        index for index, step_id in enumerate(path) if _key(step_id) == dep_key
                    )
                    raise CyclicDependencyError([*path[start:], dep])
                if mark is None:
                    self._enter(dep, marks, stack)
                    break
            else:
                stack.pop()
                marks[_key(step.step_id)] = _Mark.DONE
                ordered.append(step)

    def _enter(
        self,
        step_id: str,
        marks: dict[str, _Mark],
        stack: list[tuple[PipelineStep, Iterator[str]]],
    ) -> None:
        key = _key(step_id)
        step = self._steps.get(key)
        if step is None:
            log.warning("Step '%s' is not registered; skipping it.", step_id)
            marks[key] = _Mark.DONE
            return
        marks[key] = _Mark.IN_PROGRESS
        stack.append((step, iter(tuple(step.dependencies))))


def build_registry(*step_groups: Iterable[PipelineStep]) -> StepRegistry:
    """
    Build a StepRegistry from one or more groups of steps.

    Parameters
    ----------
    step_groups
        Iterables of step instances; later groups override earlier ids.

    Returns
    -------
    StepRegistry
        Registry containing all provided steps.
    """
    registry = StepRegistry()
    for group in step_groups:
        for step in group:
            registry.register(step)
    return registry


__all__ = [
    "StepRegistry",
    "build_registry",
]
