from .dependency import Annotation, DependencyGraph, Edge, build_graph
from .cycles import CycleResolver, ProblemSet, strongly_connected_components
from .ordering import TopologicalOrderer
from .publish import OrderPublisher, ResolvedEdge, Snapshot

__all__ = [
    'Annotation',
    'DependencyGraph',
    'Edge',
    'build_graph',
    'CycleResolver',
    'ProblemSet',
    'strongly_connected_components',
    'TopologicalOrderer',
    'OrderPublisher',
    'ResolvedEdge',
    'Snapshot'
]
