import os
import xml.etree.ElementTree as ET

from ..core.model import ReferentialAction
from ..core.strategy import Snapshot
from ..core.util import safe_filename


def _bool(value: bool) -> str:
    return "true" if value else "false"


def build_summary(snapshot: Snapshot) -> ET.Element:
    """
    XML summary of the schema. Relationships hang off the columns that take
    part in them: <child> on the referenced column, <parent> on the
    referencing one.
    """
    model = snapshot.model
    root = ET.Element("database", name=model.database, schema=model.schema, type=model.db_type)
    tables_el = ET.SubElement(root, "tables")

    for table in snapshot.tables:
        table_el = ET.SubElement(tables_el, "table", name=table.name, schema=table.schema, type="TABLE")

        for column in table.columns:
            column_el = ET.SubElement(
                table_el, "column",
                defaultValue="null" if column.default is None else str(column.default),
                id=str(column.position - 1),
                name=column.name,
                nullable=_bool(column.nullable),
                primaryKey=_bool(column.primary_key),
                type=column.type,
            )

            for edge in snapshot.children(table):
                if column.name not in edge.parent_columns:
                    continue
                i = edge.parent_columns.index(column.name)
                ET.SubElement(
                    column_el, "child",
                    column=edge.child_columns[i],
                    deferred=_bool(edge.deferred),
                    foreignKey=edge.name,
                    onDeleteCascade=_bool(edge.on_delete is ReferentialAction.CASCADE),
                    schema=edge.child[0],
                    table=edge.child[1],
                )
            for edge in snapshot.parents(table):
                if column.name not in edge.child_columns:
                    continue
                i = edge.child_columns.index(column.name)
                ET.SubElement(
                    column_el, "parent",
                    column=edge.parent_columns[i],
                    deferred=_bool(edge.deferred),
                    foreignKey=edge.name,
                    onDeleteCascade=_bool(edge.on_delete is ReferentialAction.CASCADE),
                    schema=edge.parent[0],
                    table=edge.parent[1],
                )

        for sequence, column in enumerate(table.primary_key, 1):
            ET.SubElement(table_el, "primaryKey", column=column.name, sequenceNumberInPK=str(sequence))

    return root


def summary_filename(snapshot: Snapshot) -> str:
    model = snapshot.model
    parts = [p for p in (model.database, model.schema) if p]
    return safe_filename(".".join(parts) or "schema") + ".xml"


def write_summary(snapshot: Snapshot, output_dir: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    root = build_summary(snapshot)
    ET.indent(root, space="   ")
    path = os.path.join(output_dir, summary_filename(snapshot))
    ET.ElementTree(root).write(path, encoding="UTF-8", xml_declaration=True)
    return path
