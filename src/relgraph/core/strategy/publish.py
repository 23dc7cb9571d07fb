from typing import Dict, List, Mapping, Optional, Tuple, Union
from dataclasses import dataclass, field
from types import MappingProxyType
import logging

from ..exceptions import GraphIntegrityError
from ..model import ReferentialAction, SchemaModel, Table, TableKey
from ..util import format_key
from .dependency import Annotation, DependencyGraph, Edge


@dataclass(frozen=True)
class ResolvedEdge:
    """Read-only view of an annotated dependency edge"""
    name: str
    parent: TableKey
    child: TableKey
    parent_columns: Tuple[str, ...]
    child_columns: Tuple[str, ...]
    annotation: Annotation
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION

    @classmethod
    def from_edge(cls, edge: Edge) -> "ResolvedEdge":
        constraint = edge.constraint
        return cls(
            name=constraint.name,
            parent=edge.parent.key,
            child=edge.child.key,
            parent_columns=constraint.parent_columns,
            child_columns=constraint.child_columns,
            annotation=edge.annotation,
            on_update=constraint.on_update,
            on_delete=constraint.on_delete,
        )

    def __str__(self):
        marker = " [deferred]" if self.deferred else ""
        return (f"{format_key(self.child)}({', '.join(self.child_columns)}) -> "
                f"{format_key(self.parent)}({', '.join(self.parent_columns)}){marker}")

    @property
    def deferred(self) -> bool:
        return self.annotation is Annotation.DEFERRED

    @property
    def is_self_loop(self) -> bool:
        return self.parent == self.child

    @property
    def sort_key(self) -> tuple:
        return (self.child, self.parent, self.name, self.child_columns, self.parent_columns)


@dataclass(frozen=True)
class Snapshot:
    """
    The fully resolved outcome of one run, shared by every renderer.
    All collections are tuples or read-only mappings.
    """
    model: SchemaModel
    tables: Tuple[Table, ...]
    edges: Tuple[ResolvedEdge, ...]
    insertion_order: Tuple[Table, ...]
    deletion_order: Tuple[Table, ...]
    levels: Mapping[int, Tuple[Table, ...]]
    _children: Mapping[TableKey, Tuple[ResolvedEdge, ...]] = field(repr=False)
    _parents: Mapping[TableKey, Tuple[ResolvedEdge, ...]] = field(repr=False)

    @property
    def deferred_edges(self) -> Tuple[ResolvedEdge, ...]:
        return tuple(e for e in self.edges if e.deferred)

    def get_table(self, name: str, schema: Optional[str] = None) -> Optional[Table]:
        return self.model.get_table(name, schema)

    def children(self, table: Union[Table, TableKey]) -> Tuple[ResolvedEdge, ...]:
        """Edges to tables that reference `table` (its incoming foreign keys)"""
        return self._children.get(_key(table), ())

    def parents(self, table: Union[Table, TableKey]) -> Tuple[ResolvedEdge, ...]:
        """Edges to tables that `table` references (its outgoing foreign keys)"""
        return self._parents.get(_key(table), ())

    def visualize(self) -> str:
        """Generate a text representation of the resolved graph"""
        lines = ["Dependency Graph:"]
        lines.append("=" * 50)

        for table in self.tables:
            parents = self.parents(table)
            if parents:
                rendered = [format_key(e.parent) + (" [deferred]" if e.deferred else "") for e in parents]
                lines.append(f"{table.full_name} -> {', '.join(rendered)}")
            else:
                lines.append(f"{table.full_name} (no dependencies)")

        lines.append("\nDependency Levels:")
        lines.append("-" * 50)
        for level, tables in self.levels.items():
            lines.append(f"Level {level}: {', '.join(t.full_name for t in tables)}")

        if self.deferred_edges:
            lines.append("\nDeferred Relationships:")
            lines.append("-" * 50)
            for edge in self.deferred_edges:
                lines.append(f"{edge.name}: {edge}")

        return "\n".join(lines)


class OrderPublisher:
    """Freezes a resolved graph and its orders into a Snapshot"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger

    def publish(self, model: SchemaModel, graph: DependencyGraph, insertion_order: List[Table],
                deletion_order: List[Table], levels: Dict[int, List[Table]]) -> Snapshot:
        self._check(graph, insertion_order, deletion_order)

        edges = tuple(sorted((ResolvedEdge.from_edge(e) for e in graph.edges), key=lambda e: e.sort_key))
        children: Dict[TableKey, List[ResolvedEdge]] = {}
        parents: Dict[TableKey, List[ResolvedEdge]] = {}
        for edge in edges:
            children.setdefault(edge.parent, []).append(edge)
            parents.setdefault(edge.child, []).append(edge)

        snapshot = Snapshot(
            model=model,
            tables=tuple(graph.tables[key] for key in graph.nodes()),
            edges=edges,
            insertion_order=tuple(insertion_order),
            deletion_order=tuple(deletion_order),
            levels=MappingProxyType({level: tuple(tables) for level, tables in levels.items()}),
            _children=MappingProxyType({k: tuple(v) for k, v in children.items()}),
            _parents=MappingProxyType({k: tuple(v) for k, v in parents.items()}),
        )

        if self.logger:
            self.logger.info(
                f"Published snapshot: {len(snapshot.tables)} tables, {len(edges)} relationships, "
                f"{len(snapshot.deferred_edges)} deferred"
            )
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug(snapshot.visualize())
        return snapshot

    @staticmethod
    def _check(graph: DependencyGraph, insertion_order: List[Table], deletion_order: List[Table]) -> None:
        if not graph.is_resolved():
            raise GraphIntegrityError("Cannot publish a graph whose edges are not all annotated")

        keys = [t.key for t in insertion_order]
        if len(keys) != len(set(keys)) or set(keys) != set(graph.tables):
            raise GraphIntegrityError("Insertion order must list every table exactly once")
        if [t.key for t in deletion_order] != keys[::-1]:
            raise GraphIntegrityError("Deletion order is not the reverse of the insertion order")

        position = {key: i for i, key in enumerate(keys)}
        late = [e for e in graph.normal_edges() if position[e.parent.key] >= position[e.child.key]]
        if late:
            raise GraphIntegrityError(
                "Insertion order places children before their parents",
                [e.constraint.name for e in late],
            )


def _key(table: Union[Table, TableKey]) -> TableKey:
    return table.key if isinstance(table, Table) else table
