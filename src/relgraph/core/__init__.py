from .exceptions import GraphIntegrityError, MalformedSchemaError, RelgraphError, UnsupportedDatabase
from .model import Column, ForeignKeyConstraint, ReferentialAction, SchemaModel, Table
from .engine import Engine, RunConfig, RunContext, resolve

__all__ = [
    'GraphIntegrityError',
    'MalformedSchemaError',
    'RelgraphError',
    'UnsupportedDatabase',
    'Column',
    'ForeignKeyConstraint',
    'ReferentialAction',
    'SchemaModel',
    'Table',
    'Engine',
    'RunConfig',
    'RunContext',
    'resolve'
]
