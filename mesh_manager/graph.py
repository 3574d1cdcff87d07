# /*
# Copyright 2026 The Mesh Manager Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */


"""Resource graph: dependency-ordered, concurrent execution of provisioning steps.

Uses NetworkX for acyclicity validation, topological ordering and descendant
lookup. Nodes are executed on a bounded thread pool; a node starts only once
every dependency succeeded (or is a best-effort node that failed).
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

import networkx as nx

from mesh_manager import console, logger
from mesh_manager.constants import DEFAULT_PARALLELISM
from mesh_manager.errors import CycleDetected, ValidationError
from mesh_manager.models import NodeState


@dataclass
class GraphNode:
    """One idempotent provisioning step.

    Attributes:
        id: Unique node identifier within the graph.
        operation: Zero-argument callable performing the step.
        depends_on: Ids of nodes that must succeed first.
        best_effort: Whether a failure is only logged instead of propagated.
        branch: Name of the branch (cloud target) the node belongs to.
        state: Current lifecycle state.
        result: Return value of the operation once it succeeded.
        error: Exception raised by the operation, if it failed.
        skip_reason: Why the node was skipped, if it was.
    """

    id: str
    operation: Callable[[], Any]
    depends_on: frozenset[str] = frozenset()
    best_effort: bool = False
    branch: str | None = None
    state: NodeState = NodeState.PENDING
    result: Any = None
    error: BaseException | None = None
    skip_reason: str | None = None
    started_at: float | None = field(default=None, repr=False)
    finished_at: float | None = field(default=None, repr=False)

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass
class GraphOutcome:
    """Terminal state of every node after a run.

    Attributes:
        nodes: All nodes keyed by id.
        start_order: Node ids in the order they transitioned to Running.
        cancelled: Whether the run-scoped cancellation signal was set.
    """

    nodes: dict[str, GraphNode]
    start_order: list[str]
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        """True when every required node succeeded."""
        return all(
            node.state is NodeState.SUCCEEDED
            for node in self.nodes.values()
            if not node.best_effort
        )

    def branch_nodes(self, branch: str) -> list[GraphNode]:
        return [node for node in self.nodes.values() if node.branch == branch]

    def first_failure(self, branch: str | None = None) -> GraphNode | None:
        """Return the earliest-finished failed required node, optionally within a branch."""
        failed = [
            node for node in self.nodes.values()
            if node.state is NodeState.FAILED and not node.best_effort
            and (branch is None or node.branch == branch)
        ]
        if not failed:
            return None
        return min(failed, key=lambda node: node.finished_at or 0.0)


class ResourceGraph:
    """Directed acyclic graph of provisioning steps.

    Edges point from a dependency to its dependent. Declaration order implies
    nothing; only explicit ``depends_on`` edges constrain execution.
    """

    def __init__(self) -> None:
        self._graph: nx.DiGraph = nx.DiGraph()
        self._nodes: dict[str, GraphNode] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def nodes(self) -> dict[str, GraphNode]:
        return dict(self._nodes)

    def node(self, node_id: str) -> GraphNode:
        return self._nodes[node_id]

    def add_node(
        self,
        node_id: str,
        operation: Callable[[], Any],
        depends_on: Iterable[str] = (),
        *,
        best_effort: bool = False,
        branch: str | None = None,
    ) -> GraphNode:
        """Add a step to the graph.

        Args:
            node_id: Unique node identifier.
            operation: Zero-argument callable performing the step.
            depends_on: Ids of nodes that must succeed first. They may be
                added later; unknown ids are reported by :meth:`validate`.
            best_effort: Whether a failure of this node is only logged.
            branch: Branch (cloud target) the node belongs to.

        Returns:
            The created node.

        Raises:
            ValidationError: If the id is already used.
        """
        if node_id in self._nodes:
            raise ValidationError(f"Duplicate graph node '{node_id}'")
        node = GraphNode(
            id=node_id,
            operation=operation,
            depends_on=frozenset(depends_on),
            best_effort=best_effort,
            branch=branch,
        )
        self._nodes[node_id] = node
        self._graph.add_node(node_id)
        for dep in node.depends_on:
            self._graph.add_edge(dep, node_id)
        return node

    @classmethod
    def combine(cls, *graphs: ResourceGraph) -> ResourceGraph:
        """Merge independent graphs into one graph with fresh node state.

        Raises:
            ValidationError: If two graphs share a node id.
        """
        merged = cls()
        for graph in graphs:
            for node in graph._nodes.values():
                merged.add_node(
                    node.id, node.operation, node.depends_on,
                    best_effort=node.best_effort, branch=node.branch,
                )
        return merged

    def validate(self) -> None:
        """Validate that every dependency exists and the graph is acyclic.

        Raises:
            ValidationError: If a dependency refers to an unknown node.
            CycleDetected: If the dependency edges form a cycle.
        """
        unknown = sorted(set(self._graph.nodes()) - set(self._nodes))
        if unknown:
            dependents = sorted(
                node.id for node in self._nodes.values() if node.depends_on & set(unknown)
            )
            raise ValidationError(
                f"Unknown dependencies {', '.join(unknown)} referenced by {', '.join(dependents)}"
            )
        if not nx.is_directed_acyclic_graph(self._graph):
            try:
                cycle = nx.find_cycle(self._graph)
            except nx.NetworkXNoCycle:
                raise CycleDetected([]) from None
            path = [edge[0] for edge in cycle]
            raise CycleDetected(path + [path[0]])

    def topological_order(self) -> list[str]:
        """Return node ids in a valid execution order, ties broken by id."""
        self.validate()
        return list(nx.lexicographical_topological_sort(self._graph))

    def descendants(self, node_id: str) -> set[str]:
        return nx.descendants(self._graph, node_id)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(
        self,
        parallelism: int = DEFAULT_PARALLELISM,
        cancel_event: threading.Event | None = None,
    ) -> GraphOutcome:
        """Execute every reachable node in dependency order.

        Args:
            parallelism: Maximum number of nodes executing at once.
            cancel_event: Run-scoped cancellation signal. Once set, running
                nodes finish and every pending node is skipped.

        Returns:
            The terminal state of every node.

        Raises:
            ValidationError: If the graph is invalid or parallelism < 1.
            CycleDetected: If the dependency edges form a cycle.
        """
        if parallelism < 1:
            raise ValidationError(f"parallelism must be >= 1, got {parallelism}")
        order = self.topological_order()
        if cancel_event is None:
            cancel_event = threading.Event()

        start_order: list[str] = []
        running: dict[Future, str] = {}
        with ThreadPoolExecutor(max_workers=parallelism, thread_name_prefix="graph") as executor:
            while True:
                if cancel_event.is_set():
                    self._skip_pending("run cancelled")
                else:
                    for node_id in order:
                        if len(running) >= parallelism:
                            break
                        node = self._nodes[node_id]
                        if node.state is NodeState.PENDING and self._is_eligible(node):
                            node.state = NodeState.RUNNING
                            node.started_at = time.monotonic()
                            start_order.append(node_id)
                            logger.debug("Starting node %s", node_id)
                            running[executor.submit(self._execute, node)] = node_id
                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    self._settle(self._nodes[running.pop(future)], *future.result())

        self._skip_pending("dependencies never became eligible")
        return GraphOutcome(nodes=dict(self._nodes), start_order=start_order, cancelled=cancel_event.is_set())

    def _is_eligible(self, node: GraphNode) -> bool:
        for dep_id in node.depends_on:
            dep = self._nodes[dep_id]
            if dep.state is NodeState.SUCCEEDED:
                continue
            if dep.state is NodeState.FAILED and dep.best_effort:
                continue
            return False
        return True

    @staticmethod
    def _execute(node: GraphNode) -> tuple[Any, BaseException | None, str]:
        """Run one node's operation in a worker thread, capturing its output."""
        result: Any = None
        error: BaseException | None = None
        with console.buffered() as buf:
            try:
                result = node.operation()
            except Exception as exc:
                error = exc
        return result, error, buf.getvalue()

    def _settle(self, node: GraphNode, result: Any, error: BaseException | None, output: str) -> None:
        node.finished_at = time.monotonic()
        if output:
            console.print(output, end="")
        if error is None:
            node.result = result
            node.state = NodeState.SUCCEEDED
            logger.debug("Node %s succeeded", node.id)
            return

        node.error = error
        node.state = NodeState.FAILED
        if node.best_effort:
            logger.warning("Best-effort step %s failed, continuing: %s", node.id, error)
            return

        logger.error("Step %s failed: %s", node.id, error)
        for desc_id in sorted(self.descendants(node.id)):
            desc = self._nodes[desc_id]
            if desc.state is NodeState.PENDING:
                desc.state = NodeState.SKIPPED
                desc.skip_reason = f"dependency '{node.id}' failed"
                logger.info("Skipping %s: %s", desc_id, desc.skip_reason)

    def _skip_pending(self, reason: str) -> None:
        for node in self._nodes.values():
            if node.state is NodeState.PENDING:
                node.state = NodeState.SKIPPED
                node.skip_reason = reason
