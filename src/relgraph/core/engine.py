import logging
from dataclasses import dataclass
from typing import List, Optional

from .model import SchemaModel, Table
from .source import MetadataSource, open_source
from .strategy import (
    CycleResolver, DependencyGraph, Edge, OrderPublisher, Snapshot, TopologicalOrderer, build_graph
)


@dataclass
class RunConfig:
    """Options of one documentation run"""
    output_dir: str = "output"
    database: Optional[str] = None
    schema: Optional[str] = None
    include: Optional[str] = None
    exclude: Optional[str] = None
    qualified: bool = False


@dataclass
class RunContext:
    """Everything one resolution run produced. Nothing here is shared between runs."""
    model: SchemaModel
    graph: DependencyGraph
    deferred: List[Edge]
    insertion_order: List[Table]
    deletion_order: List[Table]
    snapshot: Snapshot


def resolve(model: SchemaModel, logger: Optional[logging.Logger] = None) -> RunContext:
    """
    Run the graph pipeline over a validated model: build the graph, defer
    cycle-closing edges, order the tables and publish the snapshot. Each stage
    runs on the complete output of the previous one.
    """
    graph = build_graph(model, logger)
    deferred = CycleResolver(logger).resolve(graph)

    orderer = TopologicalOrderer(logger)
    insertion_order = orderer.insertion_order(graph)
    deletion_order = orderer.deletion_order(insertion_order)
    levels = orderer.dependency_levels(graph, insertion_order)

    snapshot = OrderPublisher(logger).publish(model, graph, insertion_order, deletion_order, levels)
    return RunContext(model, graph, deferred, insertion_order, deletion_order, snapshot)


class Engine:
    def __init__(self, con, logger: Optional[logging.Logger] = None,
                 include: Optional[str] = None, exclude: Optional[str] = None) -> None:
        self.logger = None
        self.connection = con

        # Validate logger type if provided
        if logger is not None:
            if not isinstance(logger, logging.Logger):
                raise TypeError(
                    f"Logger must be an instance of logging.Logger, "
                    f"got {type(logger).__name__}"
                )
            self.logger = logger

            if logger.isEnabledFor(logging.INFO):
                logger.info(f"Initializing engine with connection type: {type(con).__name__}")

        # Match connection to database
        self.source: MetadataSource = open_source(con, logger, include=include, exclude=exclude)

    @classmethod
    def from_config(cls, con, config: RunConfig, logger: Optional[logging.Logger] = None) -> "Engine":
        return cls(con, logger, include=config.include, exclude=config.exclude)

    def load(self, schema: Optional[str] = None, database: Optional[str] = None) -> SchemaModel:
        """Read the schema metadata; driver errors propagate unchanged"""
        return self.source.load(schema, database)

    def resolve(self, schema: Optional[str] = None, database: Optional[str] = None) -> RunContext:
        model = self.load(schema, database)
        try:
            return resolve(model, self.logger)
        except Exception as e:
            if self.logger:
                self.logger.error(f"Resolution failed for schema {model.schema!r}: {e}")
            raise

    def document(self, config: RunConfig) -> List[str]:
        """
        Resolve the configured schema and write every artifact into
        config.output_dir. Nothing is written when resolution fails.
        """
        from ..render import write_all

        context = self.resolve(config.schema, config.database)
        return write_all(context.snapshot, config.output_dir, qualified=config.qualified, logger=self.logger)

    def get_source(self) -> MetadataSource:
        """Get the underlying metadata source"""
        return self.source

    def get_connection(self):
        """Get the underlying database connection"""
        return self.connection
