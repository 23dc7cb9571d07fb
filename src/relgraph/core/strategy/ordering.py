from typing import Dict, List, Optional
from collections import defaultdict
import heapq
import logging

from ..exceptions import GraphIntegrityError
from ..model import Table, TableKey
from ..util import format_key
from .dependency import DependencyGraph


class TopologicalOrderer:
    """
    Orders the tables of a resolved DependencyGraph so that every NORMAL edge
    points from an earlier table to a later one.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger

    def insertion_order(self, graph: DependencyGraph) -> List[Table]:
        """
        Kahn's algorithm over NORMAL edges. Among the tables that are ready at
        the same time the smallest (schema, name) always goes first.
        """
        if not graph.is_resolved():
            raise GraphIntegrityError("Cannot order a graph whose edges are not all annotated")

        in_degree: Dict[TableKey, int] = {key: 0 for key in graph.tables}
        dependents: Dict[TableKey, List[TableKey]] = defaultdict(list)
        for edge in graph.normal_edges():
            in_degree[edge.child.key] += 1
            dependents[edge.parent.key].append(edge.child.key)

        ready = [key for key, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        ordered: List[TableKey] = []

        while ready:
            key = heapq.heappop(ready)
            ordered.append(key)

            # Parallel edges decrement once each, matching how they were counted
            for dependent in dependents[key]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if len(ordered) != len(graph.tables):
            stuck = sorted(key for key, degree in in_degree.items() if degree > 0)
            raise GraphIntegrityError(
                "Topological order does not cover every table",
                [format_key(key) for key in stuck],
            )

        if self.logger:
            self.logger.info(f"Computed insertion order for {len(ordered)} tables")
        return [graph.tables[key] for key in ordered]

    def deletion_order(self, insertion_order: List[Table]) -> List[Table]:
        """The exact reverse of an insertion order"""
        return list(reversed(insertion_order))

    def dependency_levels(self, graph: DependencyGraph, insertion_order: List[Table]) -> Dict[int, List[Table]]:
        """
        Group tables by dependency level over NORMAL edges.
        Level 0 has no dependencies, level 1 depends only on level 0, etc.
        Tables at the same level can be processed in parallel.
        """
        table_levels: Dict[TableKey, int] = {}
        for table in insertion_order:
            parents = [e.parent.key for e in graph.parents.get(table.key, []) if not e.deferred]
            table_levels[table.key] = max((table_levels[p] + 1 for p in parents), default=0)

        levels: Dict[int, List[Table]] = defaultdict(list)
        for table in insertion_order:
            levels[table_levels[table.key]].append(table)
        return {level: sorted(tables, key=lambda t: t.key) for level, tables in sorted(levels.items())}
