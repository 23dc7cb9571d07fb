import unittest

from relgraph.core.exceptions import GraphIntegrityError
from relgraph.core.model import Column, ForeignKeyConstraint, SchemaModel, Table
from relgraph.core.strategy import Annotation, DependencyGraph, build_graph


def model(tables, links):
    """links: (constraint name, child, parent); each child gets a <parent>_id column per link"""
    columns = {name: [Column("id", primary_key=True)] for name in tables}
    fks = []
    for name, child, parent in links:
        column = f"{name}_col"
        columns[child].append(Column(column))
        fks.append(ForeignKeyConstraint(name, child, [column], parent, ["id"]))
    return SchemaModel([Table(name, cols) for name, cols in columns.items()], fks)


class TestBuildGraph(unittest.TestCase):
    def test_one_node_per_table_one_edge_per_constraint(self):
        graph = build_graph(model(["a", "b", "c"], [("b_a", "b", "a"), ("c_b", "c", "b")]))
        self.assertEqual(graph.nodes(), [("", "a"), ("", "b"), ("", "c")])
        self.assertEqual(len(graph.edges), 2)

        edge = graph.children[("", "a")][0]
        self.assertEqual(edge.parent.name, "a")
        self.assertEqual(edge.child.name, "b")
        self.assertIs(graph.parents[("", "b")][0], edge)

    def test_parallel_edges_are_kept(self):
        graph = build_graph(model(["a", "b"], [("b_a_1", "b", "a"), ("b_a_2", "b", "a")]))
        self.assertEqual(len(graph.edges), 2)
        self.assertEqual(sorted(e.constraint.name for e in graph.children[("", "a")]), ["b_a_1", "b_a_2"])

    def test_edges_start_unannotated(self):
        graph = build_graph(model(["a", "b"], [("b_a", "b", "a")]))
        self.assertFalse(graph.is_resolved())
        self.assertIsNone(graph.edges[0].annotation)

    def test_annotation_is_set_once(self):
        graph = build_graph(model(["a", "b"], [("b_a", "b", "a")]))
        edge = graph.edges[0]
        edge.annotate(Annotation.NORMAL)
        self.assertTrue(graph.is_resolved())
        with self.assertRaises(GraphIntegrityError):
            edge.annotate(Annotation.DEFERRED)
        self.assertEqual(edge.annotation, Annotation.NORMAL)

    def test_edge_outside_graph(self):
        m = model(["a", "b"], [("b_a", "b", "a")])
        graph = DependencyGraph()
        graph.add_table(m.get_table("b"))
        with self.assertRaises(GraphIntegrityError):
            graph.add_edge(m.foreign_keys[0])


class TestFindCycle(unittest.TestCase):
    def test_acyclic(self):
        graph = build_graph(model(["a", "b", "c"], [("b_a", "b", "a"), ("c_b", "c", "b"), ("c_a", "c", "a")]))
        self.assertIsNone(graph.find_cycle())

    def test_self_loop(self):
        graph = build_graph(model(["s"], [("s_s", "s", "s")]))
        self.assertEqual(graph.find_cycle(), [("", "s"), ("", "s")])

    def test_three_table_cycle(self):
        graph = build_graph(model(["a", "b", "c"], [("b_a", "b", "a"), ("c_b", "c", "b"), ("a_c", "a", "c")]))
        cycle = graph.find_cycle()
        self.assertEqual(cycle[0], cycle[-1])
        self.assertEqual(sorted(set(cycle)), [("", "a"), ("", "b"), ("", "c")])

    def test_restricted_to_given_edges(self):
        graph = build_graph(model(["x", "y"], [("x_y", "x", "y"), ("y_x", "y", "x")]))
        self.assertIsNotNone(graph.find_cycle())
        self.assertIsNone(graph.find_cycle(graph.edges[:1]))
