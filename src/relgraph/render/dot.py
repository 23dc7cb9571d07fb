import os
from html import escape
from typing import Dict, Iterable, List, Optional

from .. import __version__
from ..core.model import Table, TableKey
from ..core.strategy import ResolvedEdge, Snapshot
from ..core.util import get_name, safe_filename

DIAGRAM_DIR = "diagrams"
SUMMARY_FILE = "relationships.dot"


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DotWriter:
    """
    Renders a Snapshot as Graphviz DOT text. Edges run from the child
    column to the parent column; deferred edges are dashed.
    """

    def __init__(self, snapshot: Snapshot, qualified: bool = False) -> None:
        self.snapshot = snapshot
        self.qualified = qualified

    def _node_id(self, table: Table) -> str:
        return _quote(get_name(table, self.qualified))

    def _header(self, name: str) -> List[str]:
        return [
            f"// relgraph {__version__}",
            f"digraph {_quote(name)} {{",
            '  graph [ rankdir="RL" bgcolor="#ffffff" nodesep="0.18" ranksep="0.46" '
            'fontname="Helvetica" fontsize="11" ];',
            '  node [ fontname="Helvetica" fontsize="11" shape="plaintext" ];',
            '  edge [ arrowsize="0.8" ];',
        ]

    def _table_node(self, table: Table, focus: bool = False) -> List[str]:
        color = "#f5f5f5" if focus else "#ffffff"
        name = escape(get_name(table, self.qualified))
        lines = [
            f"  {self._node_id(table)} [",
            "    label=<",
            f'    <TABLE BORDER="0" CELLBORDER="1" CELLSPACING="0" BGCOLOR="{color}">',
            f'      <TR><TD COLSPAN="2" BGCOLOR="#9bab96" ALIGN="CENTER"><B>{name}</B></TD></TR>',
        ]
        for column in table.columns:
            marker = " (PK)" if column.primary_key else ""
            lines.append(
                f'      <TR><TD PORT="{escape(column.name)}" ALIGN="LEFT">{escape(column.name)}{marker}</TD>'
                f'<TD ALIGN="LEFT">{escape(column.type.lower())}</TD></TR>'
            )
        lines.append("    </TABLE>>")
        lines.append(f'    tooltip={_quote(get_name(table, self.qualified))}')
        lines.append("  ];")
        return lines

    def _edge(self, edge: ResolvedEdge) -> str:
        child = self.snapshot.get_table(edge.child[1], edge.child[0])
        parent = self.snapshot.get_table(edge.parent[1], edge.parent[0])
        nullable = any(child.get_column(name).nullable for name in edge.child_columns)
        attributes = [
            "arrowhead=none",
            "dir=back",
            f"arrowtail={'crowodot' if nullable else 'crowtee'}",
        ]
        if edge.deferred:
            attributes.append('style="dashed"')
        return (
            f"  {self._node_id(child)}:{_quote(edge.child_columns[0])}:w -> "
            f"{self._node_id(parent)}:{_quote(edge.parent_columns[0])}:e "
            f"[{' '.join(attributes)}];"
        )

    def _render(self, name: str, tables: Iterable[Table], edges: Iterable[ResolvedEdge],
                focus: Optional[Table] = None) -> str:
        lines = self._header(name)
        for edge in edges:
            lines.append(self._edge(edge))
        for table in tables:
            lines.extend(self._table_node(table, focus is not None and table.key == focus.key))
        lines.append("}")
        return "\n".join(lines) + "\n"

    def relationships(self) -> str:
        """Every table and every relationship of the schema"""
        return self._render("relationships", self.snapshot.tables, self.snapshot.edges)

    def one_degree(self, table: Table) -> str:
        """A table together with the tables it references and the tables referencing it"""
        edges = sorted(set(self.snapshot.parents(table)) | set(self.snapshot.children(table)),
                       key=lambda e: e.sort_key)
        keys = {table.key}
        for edge in edges:
            keys.update((edge.parent, edge.child))
        tables = [t for t in self.snapshot.tables if t.key in keys]
        return self._render("oneDegreeRelationshipsDiagram", tables, edges, focus=table)

    def file_names(self) -> Dict[TableKey, str]:
        """
        File name stem of each table's one-degree diagram. Names that clash
        once unsafe characters are replaced, or that differ only by case, get
        _2, _3, ... in table order.
        """
        taken = set()
        names = {}
        for table in self.snapshot.tables:
            base = safe_filename(get_name(table, self.qualified))
            name, number = base, 1
            while name.lower() in taken:
                number += 1
                name = f"{base}_{number}"
            taken.add(name.lower())
            names[table.key] = name
        return names

    def write_all(self, output_dir: str) -> List[str]:
        diagram_dir = os.path.join(output_dir, DIAGRAM_DIR)
        table_dir = os.path.join(diagram_dir, "tables")
        os.makedirs(table_dir, exist_ok=True)

        written = []
        path = os.path.join(diagram_dir, SUMMARY_FILE)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(self.relationships())
        written.append(path)

        names = self.file_names()
        for table in self.snapshot.tables:
            path = os.path.join(table_dir, names[table.key] + ".1degree.dot")
            with open(path, "w", encoding="utf-8", newline="\n") as f:
                f.write(self.one_degree(table))
            written.append(path)
        return written
