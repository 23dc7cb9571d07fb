from typing import Dict, Iterable, List, Optional, Tuple
from collections import defaultdict
from dataclasses import dataclass
import logging

from ..exceptions import GraphIntegrityError
from ..model import TableKey
from ..util import format_key
from .dependency import Annotation, DependencyGraph, Edge


@dataclass(frozen=True)
class ProblemSet:
    """A self-loop or a strongly connected component with more than one table"""
    tables: Tuple[TableKey, ...]
    edges: Tuple[Edge, ...]

    @property
    def is_self_loop(self) -> bool:
        return len(self.tables) == 1


def strongly_connected_components(nodes: Iterable[TableKey], edges: Iterable[Edge]) -> List[List[TableKey]]:
    """
    Tarjan's algorithm, iterative so that long foreign key chains do not hit
    the recursion limit. Only edges whose endpoints are both in `nodes` count.
    Components are returned in discovery order, each one sorted.
    """
    nodes = sorted(nodes)
    members = set(nodes)
    adjacency: Dict[TableKey, List[TableKey]] = defaultdict(list)
    for edge in sorted(edges, key=lambda e: e.sort_key):
        if edge.parent.key in members and edge.child.key in members:
            adjacency[edge.parent.key].append(edge.child.key)

    index: Dict[TableKey, int] = {}
    lowlink: Dict[TableKey, int] = {}
    stack: List[TableKey] = []
    on_stack = set()
    components = []

    def visit(node: TableKey) -> None:
        index[node] = lowlink[node] = len(index)
        stack.append(node)
        on_stack.add(node)

    for root in nodes:
        if root in index:
            continue
        visit(root)
        work = [(root, iter(adjacency[root]))]
        while work:
            node, neighbors = work[-1]
            descended = False
            for neighbor in neighbors:
                if neighbor not in index:
                    visit(neighbor)
                    work.append((neighbor, iter(adjacency[neighbor])))
                    descended = True
                    break
                if neighbor in on_stack:
                    lowlink[node] = min(lowlink[node], index[neighbor])
            if descended:
                continue

            work.pop()
            if work:
                caller = work[-1][0]
                lowlink[caller] = min(lowlink[caller], lowlink[node])
            if lowlink[node] == index[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def cyclic_edges(nodes: Iterable[TableKey], edges: List[Edge]) -> List[Edge]:
    """Edges lying on at least one cycle, in sort order"""
    component_of = {}
    for number, component in enumerate(strongly_connected_components(nodes, edges)):
        for key in component:
            component_of[key] = number

    result = []
    for edge in edges:
        parent = component_of.get(edge.parent.key)
        if parent is None or parent != component_of.get(edge.child.key):
            continue
        result.append(edge)
    return sorted(result, key=lambda e: e.sort_key)


class CycleResolver:
    """
    Annotates every edge of a DependencyGraph so that the NORMAL edges form
    an acyclic graph.

    Self-loops are always deferred. Inside each strongly connected component
    edges on a cycle are ranked by (child, parent, constraint name); the first
    one whose removal shrinks the set of cyclic edges by more than itself is
    deferred, and the component is re-examined until no cycle is left. Chosen
    edges that turn out not to be needed once the others are gone are
    re-admitted, newest first. The outcome only depends on names, so it does
    not change with the order metadata was loaded in.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger

    def find_problem_sets(self, graph: DependencyGraph) -> List[ProblemSet]:
        problems = []

        for edge in sorted(graph.edges, key=lambda e: e.sort_key):
            if edge.is_self_loop:
                problems.append(ProblemSet((edge.child.key,), (edge,)))

        for component in strongly_connected_components(graph.nodes(), graph.edges):
            if len(component) < 2:
                continue
            members = set(component)
            internal = tuple(sorted(
                (e for e in graph.edges
                 if e.parent.key in members and e.child.key in members and not e.is_self_loop),
                key=lambda e: e.sort_key,
            ))
            problems.append(ProblemSet(tuple(component), internal))

        return sorted(problems, key=lambda p: (p.tables, p.edges[0].sort_key))

    def resolve(self, graph: DependencyGraph) -> List[Edge]:
        """Annotate all edges and return the deferred ones in sort order"""
        if any(edge.annotation is not None for edge in graph.edges):
            raise GraphIntegrityError("Dependency graph has already been resolved")

        problems = self.find_problem_sets(graph)
        deferred: List[Edge] = []
        for problem in problems:
            if problem.is_self_loop:
                deferred.extend(problem.edges)
            else:
                deferred.extend(self._break_component(problem))

        deferred_ids = {id(edge) for edge in deferred}
        for edge in graph.edges:
            edge.annotate(Annotation.DEFERRED if id(edge) in deferred_ids else Annotation.NORMAL)

        cycle = graph.find_cycle(graph.normal_edges())
        if cycle is not None:
            raise GraphIntegrityError(
                "Cycle left among NORMAL edges after resolution",
                [format_key(key) for key in cycle],
            )

        deferred.sort(key=lambda e: e.sort_key)
        if self.logger:
            self.logger.info(
                f"Resolved {len(problems)} cyclic problem sets by deferring "
                f"{len(deferred)} of {len(graph.edges)} edges"
            )
            if self.logger.isEnabledFor(logging.DEBUG):
                for edge in deferred:
                    self.logger.debug(f"  deferred {edge.constraint.name}: {edge.constraint}")
        return deferred

    def _break_component(self, problem: ProblemSet) -> List[Edge]:
        remaining = list(problem.edges)
        chosen: List[Edge] = []

        while True:
            on_cycle = cyclic_edges(problem.tables, remaining)
            if not on_cycle:
                break
            if len(chosen) == len(problem.edges):
                raise GraphIntegrityError(
                    "Could not break cycle", [format_key(key) for key in problem.tables]
                )
            edge = self._select(problem.tables, remaining, on_cycle)
            remaining.remove(edge)
            chosen.append(edge)

        for edge in reversed(list(chosen)):
            trial = remaining + [edge]
            if not cyclic_edges(problem.tables, trial):
                remaining = trial
                chosen.remove(edge)

        if self.logger and self.logger.isEnabledFor(logging.DEBUG):
            names = ", ".join(format_key(key) for key in problem.tables)
            self.logger.debug(f"Cycle among {names} broken with {len(chosen)} deferred edge(s)")
        return chosen

    @staticmethod
    def _select(tables: Tuple[TableKey, ...], remaining: List[Edge], on_cycle: List[Edge]) -> Edge:
        """
        First edge in sort order whose removal also takes other edges off every
        cycle. When no single edge does, the first edge on a cycle.
        """
        for candidate in on_cycle:
            rest = [e for e in remaining if e is not candidate]
            if len(cyclic_edges(tables, rest)) < len(on_cycle) - 1:
                return candidate
        return on_cycle[0]
