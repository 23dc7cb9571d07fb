import os
import tempfile
import unittest

from relgraph import __version__
from relgraph.core.engine import resolve
from relgraph.core.model import Column, ForeignKeyConstraint, SchemaModel, Table
from relgraph.render import DotWriter, build_summary, format_order, write_all


def hr_model():
    return SchemaModel(
        [
            Table("department", [
                Column("id", "INTEGER", nullable=False, primary_key=True),
                Column("head_id", "INTEGER"),
            ], "hr"),
            Table("employee", [
                Column("id", "INTEGER", nullable=False, primary_key=True),
                Column("department_id", "INTEGER", nullable=False),
                Column("manager_id", "INTEGER"),
            ], "hr"),
            Table("holiday", [Column("day", "DATE", nullable=False, primary_key=True)], "hr"),
        ],
        [
            ForeignKeyConstraint("employee_department", "employee", ["department_id"], "department", ["id"],
                                 child_schema="hr", on_delete="CASCADE"),
            ForeignKeyConstraint("department_head", "department", ["head_id"], "employee", ["id"],
                                 child_schema="hr"),
            ForeignKeyConstraint("employee_manager", "employee", ["manager_id"], "employee", ["id"],
                                 child_schema="hr"),
        ],
        database="company",
        schema="hr",
        db_type="postgresql",
    )


class TestOrders(unittest.TestCase):
    def setUp(self):
        self.snapshot = resolve(hr_model()).snapshot

    def test_format_order(self):
        self.assertEqual(format_order(self.snapshot.insertion_order), "department\nemployee\nholiday\n")
        self.assertEqual(format_order(self.snapshot.deletion_order), "holiday\nemployee\ndepartment\n")
        self.assertEqual(
            format_order(self.snapshot.insertion_order, qualified=True),
            "hr.department\nhr.employee\nhr.holiday\n",
        )

    def test_empty_order(self):
        snapshot = resolve(SchemaModel([])).snapshot
        self.assertEqual(format_order(snapshot.insertion_order), "")


class TestDotWriter(unittest.TestCase):
    def setUp(self):
        self.snapshot = resolve(hr_model()).snapshot
        self.writer = DotWriter(self.snapshot)

    def test_relationships(self):
        text = self.writer.relationships()
        self.assertTrue(text.startswith(f"// relgraph {__version__}\n"))
        self.assertIn('digraph "relationships" {', text)
        self.assertEqual(text.count(" -> "), 3)
        self.assertEqual(text.count('style="dashed"'), 2)
        self.assertIn(
            '"employee":"department_id":w -> "department":"id":e [arrowhead=none dir=back arrowtail=crowtee];',
            text,
        )
        self.assertIn('"employee":"manager_id":w -> "employee":"id":e '
                      '[arrowhead=none dir=back arrowtail=crowodot style="dashed"];', text)
        self.assertTrue(text.endswith("}\n"))

    def test_one_degree(self):
        department = self.snapshot.get_table("department")
        text = self.writer.one_degree(department)
        self.assertIn('digraph "oneDegreeRelationshipsDiagram" {', text)
        self.assertEqual(text.count(" -> "), 2)
        self.assertNotIn('"holiday" [', text)

        holiday = self.writer.one_degree(self.snapshot.get_table("holiday"))
        self.assertNotIn(" -> ", holiday)
        self.assertIn('"holiday" [', holiday)

    def test_output_is_stable(self):
        again = DotWriter(resolve(hr_model()).snapshot).relationships()
        self.assertEqual(self.writer.relationships(), again)


class TestSummary(unittest.TestCase):
    def setUp(self):
        self.snapshot = resolve(hr_model()).snapshot

    def test_summary(self):
        root = build_summary(self.snapshot)
        self.assertEqual(root.tag, "database")
        self.assertEqual(root.get("name"), "company")
        self.assertEqual(root.get("type"), "postgresql")
        self.assertEqual([t.get("name") for t in root.iter("table")], ["department", "employee", "holiday"])

        employee = root.find("tables/table[@name='employee']")
        manager = employee.find("column[@name='manager_id']/parent")
        self.assertEqual(manager.get("deferred"), "true")
        self.assertEqual(manager.get("table"), "employee")

        department = employee.find("column[@name='department_id']/parent")
        self.assertEqual(department.get("deferred"), "false")
        self.assertEqual(department.get("onDeleteCascade"), "true")
        self.assertEqual(employee.find("primaryKey").get("column"), "id")

        children = root.findall("tables/table[@name='department']/column[@name='id']/child")
        self.assertEqual([c.get("table") for c in children], ["employee"])

    def test_write_all(self):
        with tempfile.TemporaryDirectory() as tmp:
            written = write_all(self.snapshot, tmp)
            names = sorted(os.path.relpath(path, tmp).replace(os.sep, "/") for path in written)
        self.assertEqual(names, [
            "company.hr.xml",
            "deletionOrder.txt",
            "diagrams/relationships.dot",
            "diagrams/tables/department.1degree.dot",
            "diagrams/tables/employee.1degree.dot",
            "diagrams/tables/holiday.1degree.dot",
            "insertionOrder.txt",
        ])


class TestDiagramFileNames(unittest.TestCase):
    def setUp(self):
        model = SchemaModel([Table(name, [Column("id")]) for name in ("a b", "a_b", "Item", "item")])
        self.writer = DotWriter(resolve(model).snapshot)

    def test_clashing_names_get_a_suffix(self):
        self.assertEqual(
            self.writer.file_names(),
            {("", "Item"): "Item", ("", "a b"): "a_b", ("", "a_b"): "a_b_2", ("", "item"): "item_2"},
        )

    def test_every_table_gets_its_own_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            written = self.writer.write_all(tmp)
            diagrams = [path for path in written if path.endswith(".1degree.dot")]
            self.assertEqual(len(set(diagrams)), 4)
            self.assertEqual(len(os.listdir(os.path.join(tmp, "diagrams", "tables"))), 4)
