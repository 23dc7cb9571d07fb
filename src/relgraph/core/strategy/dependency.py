from typing import Dict, List, Optional
from collections import defaultdict
from enum import Enum
import logging

from ..exceptions import GraphIntegrityError
from ..model import ForeignKeyConstraint, SchemaModel, Table, TableKey


class Annotation(Enum):
    """Resolution marker of a dependency edge"""
    NORMAL = "NORMAL"
    DEFERRED = "DEFERRED"


class Edge:
    """
    One foreign key constraint seen as a dependency: parent must exist before child.
    The annotation is assigned exactly once by the cycle resolver.
    """

    def __init__(self, constraint: ForeignKeyConstraint) -> None:
        self.constraint = constraint
        self.parent: Table = constraint.parent
        self.child: Table = constraint.child
        self._annotation: Optional[Annotation] = None

    def __repr__(self):
        return f"Edge({self.constraint.name!r}, {self.parent.full_name} -> {self.child.full_name}, {self._annotation})"

    @property
    def annotation(self) -> Optional[Annotation]:
        return self._annotation

    def annotate(self, annotation: Annotation) -> None:
        if self._annotation is not None:
            raise GraphIntegrityError(
                f"Edge {self.constraint.name!r} is already annotated {self._annotation.value}"
            )
        self._annotation = annotation

    @property
    def deferred(self) -> bool:
        return self._annotation is Annotation.DEFERRED

    @property
    def is_self_loop(self) -> bool:
        return self.parent.key == self.child.key

    @property
    def sort_key(self) -> tuple:
        return self.constraint.sort_key


class DependencyGraph:
    """
    Directed graph of tables. An edge parent -> child means the parent
    must be inserted before the child. Cycles are allowed.
    """

    def __init__(self) -> None:
        self.tables: Dict[TableKey, Table] = {}
        self.edges: List[Edge] = []
        self.children: Dict[TableKey, List[Edge]] = defaultdict(list)  # parent -> edges to its children
        self.parents: Dict[TableKey, List[Edge]] = defaultdict(list)   # child -> edges from its parents

    def add_table(self, table: Table) -> None:
        self.tables[table.key] = table

    def add_edge(self, constraint: ForeignKeyConstraint) -> Edge:
        edge = Edge(constraint)
        for table in (edge.parent, edge.child):
            if table is None or self.tables.get(table.key) is not table:
                raise GraphIntegrityError(
                    f"Constraint {constraint.name!r} connects a table outside the graph"
                )
        self.edges.append(edge)
        self.children[edge.parent.key].append(edge)
        self.parents[edge.child.key].append(edge)
        return edge

    def nodes(self) -> List[TableKey]:
        """Table keys in (schema, name) order"""
        return sorted(self.tables)

    def is_resolved(self) -> bool:
        return all(edge.annotation is not None for edge in self.edges)

    def normal_edges(self) -> List[Edge]:
        return [e for e in self.edges if e.annotation is Annotation.NORMAL]

    def deferred_edges(self) -> List[Edge]:
        return sorted((e for e in self.edges if e.deferred), key=lambda e: e.sort_key)

    def find_cycle(self, edges: Optional[List[Edge]] = None) -> Optional[List[TableKey]]:
        """
        Return one directed cycle among `edges` (all edges by default) as a
        list of table keys whose first and last entries are equal, or None.
        """
        if edges is None:
            edges = self.edges
        adjacency: Dict[TableKey, List[TableKey]] = defaultdict(list)
        for edge in sorted(edges, key=lambda e: e.sort_key):
            adjacency[edge.parent.key].append(edge.child.key)

        visited = set()
        for start in self.nodes():
            if start in visited:
                continue
            visited.add(start)
            path = [start]
            on_path = {start}
            stack = [iter(adjacency[start])]
            while stack:
                neighbor = next(stack[-1], None)
                if neighbor is None:
                    stack.pop()
                    on_path.discard(path.pop())
                elif neighbor in on_path:
                    return path[path.index(neighbor):] + [neighbor]
                elif neighbor not in visited:
                    visited.add(neighbor)
                    path.append(neighbor)
                    on_path.add(neighbor)
                    stack.append(iter(adjacency[neighbor]))
        return None


def build_graph(model: SchemaModel, logger: Optional[logging.Logger] = None) -> DependencyGraph:
    """One node per table and one edge per foreign key, parent -> child"""
    graph = DependencyGraph()
    for table in model.tables:
        graph.add_table(table)
    for constraint in model.foreign_keys:
        graph.add_edge(constraint)

    if logger:
        logger.info(f"Built dependency graph with {len(graph.tables)} tables and {len(graph.edges)} edges")
    return graph
