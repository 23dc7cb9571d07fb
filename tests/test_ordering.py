import itertools
import unittest

from relgraph.core.exceptions import GraphIntegrityError
from relgraph.core.model import Column, ForeignKeyConstraint, SchemaModel, Table
from relgraph.core.strategy import CycleResolver, TopologicalOrderer, build_graph


def resolved_graph(tables, links, schema=""):
    """links: (constraint name, child, parent)"""
    columns = {name: [Column("id", primary_key=True)] for name in tables}
    fks = []
    for name, child, parent in links:
        column = f"{name}_col"
        columns[child].append(Column(column))
        fks.append(ForeignKeyConstraint(name, child, [column], parent, ["id"], child_schema=schema))
    graph = build_graph(SchemaModel([Table(n, columns[n], schema) for n in tables], fks, schema=schema))
    CycleResolver().resolve(graph)
    return graph


def names(tables):
    return [t.name for t in tables]


class TestTopologicalOrderer(unittest.TestCase):
    def setUp(self):
        self.orderer = TopologicalOrderer()

    def test_chain(self):
        graph = resolved_graph(["C", "B", "A"], [("B_A", "B", "A"), ("C_B", "C", "B")])
        insertion = self.orderer.insertion_order(graph)
        self.assertEqual(names(insertion), ["A", "B", "C"])
        self.assertEqual(names(self.orderer.deletion_order(insertion)), ["C", "B", "A"])

    def test_mutual_reference(self):
        graph = resolved_graph(["x", "y"], [("y_x", "y", "x"), ("x_y", "x", "y")])
        self.assertEqual(names(self.orderer.insertion_order(graph)), ["x", "y"])

    def test_self_reference(self):
        graph = resolved_graph(["s"], [("s_manager", "s", "s")])
        insertion = self.orderer.insertion_order(graph)
        self.assertEqual(names(insertion), ["s"])
        self.assertEqual(names(self.orderer.deletion_order(insertion)), ["s"])

    def test_ties_break_by_name(self):
        graph = resolved_graph(["z_iso", "c", "b", "a_iso"], [("c_b", "c", "b")])
        self.assertEqual(names(self.orderer.insertion_order(graph)), ["a_iso", "b", "c", "z_iso"])

    def test_parent_is_not_delayed_by_unrelated_names(self):
        graph = resolved_graph(["a", "m", "z"], [("a_z", "a", "z")])
        self.assertEqual(names(self.orderer.insertion_order(graph)), ["m", "z", "a"])

    def test_parallel_edges(self):
        graph = resolved_graph(["a", "b"], [("b_a_1", "b", "a"), ("b_a_2", "b", "a")])
        self.assertEqual(names(self.orderer.insertion_order(graph)), ["a", "b"])

    def test_order_respects_normal_edges(self):
        links = [
            ("b_a", "b", "a"), ("c_b", "c", "b"), ("a_c", "a", "c"), ("d_c", "d", "c"),
            ("e_d", "e", "d"), ("d_e", "d", "e"), ("f_f", "f", "f"), ("g_a", "g", "a"),
        ]
        graph = resolved_graph(["a", "b", "c", "d", "e", "f", "g", "h"], links)
        insertion = self.orderer.insertion_order(graph)
        position = {t.key: i for i, t in enumerate(insertion)}
        self.assertEqual(len(insertion), 8)
        self.assertEqual(len(position), 8)
        for edge in graph.normal_edges():
            self.assertLess(position[edge.parent.key], position[edge.child.key])
        self.assertEqual(self.orderer.deletion_order(insertion), list(reversed(insertion)))

    def test_unresolved_graph(self):
        graph = build_graph(SchemaModel([Table("a", [Column("id")])]))
        self.assertEqual(names(self.orderer.insertion_order(graph)), ["a"])

        columns = [Column("id"), Column("a_id")]
        model = SchemaModel([Table("a", [Column("id")]), Table("b", columns)],
                            [ForeignKeyConstraint("b_a", "b", ["a_id"], "a", ["id"])])
        with self.assertRaises(GraphIntegrityError):
            self.orderer.insertion_order(build_graph(model))

    def test_dependency_levels(self):
        graph = resolved_graph(
            ["a", "b", "c", "d", "s"],
            [("b_a", "b", "a"), ("c_b", "c", "b"), ("c_a", "c", "a"), ("s_s", "s", "s")],
        )
        insertion = self.orderer.insertion_order(graph)
        levels = self.orderer.dependency_levels(graph, insertion)
        self.assertEqual({level: names(tables) for level, tables in levels.items()},
                         {0: ["a", "d", "s"], 1: ["b"], 2: ["c"]})

    def test_schema_takes_part_in_ordering(self):
        graph = resolved_graph(["b", "a"], [], schema="s")
        self.assertEqual([t.full_name for t in self.orderer.insertion_order(graph)], ["s.a", "s.b"])

    def test_orders_independent_of_load_order(self):
        tables = ["a", "b", "c", "d"]
        links = [("b_a", "b", "a"), ("a_b", "a", "b"), ("c_b", "c", "b"), ("d_c", "d", "c"), ("b_d", "b", "d")]
        results = set()
        for table_order in itertools.permutations(tables):
            for link_order in (links, list(reversed(links))):
                graph = resolved_graph(list(table_order), link_order)
                insertion = self.orderer.insertion_order(graph)
                results.add((
                    tuple(names(insertion)),
                    tuple(names(self.orderer.deletion_order(insertion))),
                    tuple(e.constraint.name for e in graph.deferred_edges()),
                ))
        self.assertEqual(len(results), 1)
