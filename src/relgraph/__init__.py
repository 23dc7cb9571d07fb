__version__ = "0.1.0"

from .core import (
    Column, Engine, ForeignKeyConstraint, GraphIntegrityError, MalformedSchemaError, ReferentialAction,
    RelgraphError, RunConfig, RunContext, SchemaModel, Table, UnsupportedDatabase, resolve
)
