import os
import re
import sqlite3
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional

import psycopg2
import psycopg2.extensions

from .exceptions import UnsupportedDatabase
from .model import Column, ForeignKeyConstraint, ReferentialAction, SchemaModel, Table


def _by_folded_name(names: Iterable[str]) -> Dict[str, str]:
    """Case-folded name -> catalog spelling"""
    return {name.lower(): name for name in names}


class Capability(Enum):
    """What a database product can report about its catalog"""
    SCHEMAS = "schemas"
    NAMED_CONSTRAINTS = "named_constraints"
    REFERENTIAL_ACTIONS = "referential_actions"


class MetadataSource(ABC):
    """
    Reads tables, columns and foreign keys for one schema and assembles them
    into a SchemaModel. One subclass per supported database product.
    """
    db_type: str = ""
    default_schema: str = ""
    capabilities: FrozenSet[Capability] = frozenset()

    def __init__(self, con, logger: Optional[logging.Logger] = None,
                 include: Optional[str] = None, exclude: Optional[str] = None):
        self.con = con
        self.logger = logger
        self.include = re.compile(include) if include else None
        self.exclude = re.compile(exclude) if exclude else None

    def _fetch_all(self, query: str, params: tuple = ()) -> List[tuple]:
        """Fetch all rows with logging"""
        if self.logger is not None and self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(f"Fetching query: {' '.join(query.split())} with params: {params}")

        try:
            cur = self.con.cursor()
            cur.execute(query, params)
            rows = cur.fetchall()
            cur.close()
            return rows
        except Exception as e:
            if self.logger is not None:
                self.logger.error(f"Error fetching query '{' '.join(query.split())}' with params {params}: {str(e)}")
            raise

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def constraint_name(self, table: str, number: int, declared: Optional[str] = None) -> str:
        """Declared name when the product keeps one, otherwise fk_<table>_<n>"""
        if declared and self.supports(Capability.NAMED_CONSTRAINTS):
            return declared
        return f"fk_{table}_{number}"

    def action(self, value) -> ReferentialAction:
        """Referential action as reported, NO ACTION when the product does not report them"""
        if not self.supports(Capability.REFERENTIAL_ACTIONS):
            return ReferentialAction.NO_ACTION
        return ReferentialAction.parse(value)

    def accepts(self, table_name: str) -> bool:
        if self.include is not None and not self.include.fullmatch(table_name):
            return False
        if self.exclude is not None and self.exclude.fullmatch(table_name):
            return False
        return True

    # Catalog queries that must be implemented by subclasses
    @abstractmethod
    def database_name(self) -> str:
        pass

    @abstractmethod
    def list_tables(self, schema: str) -> List[str]:
        pass

    @abstractmethod
    def list_columns(self, table: str, schema: str) -> List[Column]:
        pass

    @abstractmethod
    def list_foreign_keys(self, table: str, schema: str) -> List[ForeignKeyConstraint]:
        pass

    def load(self, schema: Optional[str] = None, database: Optional[str] = None) -> SchemaModel:
        """
        Read the whole schema before building the model; constraints pointing
        at tables that were filtered out or live in another schema are dropped.
        """
        schema = schema or self.default_schema
        if schema != self.default_schema and not self.supports(Capability.SCHEMAS):
            error_msg = f"{self.db_type} databases only have the {self.default_schema!r} schema, not {schema!r}"
            if self.logger:
                self.logger.error(error_msg)
            raise UnsupportedDatabase(error_msg)
        database = database or self.database_name()

        names = sorted(n for n in self.list_tables(schema) if self.accepts(n))
        tables = [Table(name, self.list_columns(name, schema), schema) for name in names]
        loaded = {table.key for table in tables}

        foreign_keys = []
        for table in tables:
            for fk in self.list_foreign_keys(table.name, schema):
                if fk.parent_key not in loaded:
                    if self.logger:
                        self.logger.warning(f"Skipping {fk.name}: {fk.parent_key[0]}.{fk.parent_key[1]} is not loaded")
                    continue
                foreign_keys.append(fk)

        if self.logger:
            self.logger.info(
                f"Loaded {len(tables)} tables and {len(foreign_keys)} foreign keys "
                f"from {self.db_type} database {database!r}, schema {schema!r}"
            )
        return SchemaModel(tables, foreign_keys, database=database, schema=schema, db_type=self.db_type)


class SQLiteSource(MetadataSource):
    db_type = "sqlite"
    default_schema = "main"
    capabilities = frozenset({Capability.REFERENTIAL_ACTIONS})

    def database_name(self) -> str:
        rows = self._fetch_all("SELECT file FROM pragma_database_list WHERE name = 'main'")
        path = rows[0][0] if rows else ""
        if not path:
            return "main"
        return os.path.splitext(os.path.basename(path))[0]

    def list_tables(self, schema: str) -> List[str]:
        rows = self._fetch_all(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row[0] for row in rows]

    def list_columns(self, table: str, schema: str) -> List[Column]:
        rows = self._fetch_all(
            'SELECT cid, name, type, "notnull", dflt_value, pk FROM pragma_table_info(?) ORDER BY cid',
            (table,)
        )
        return [
            Column(name, type=col_type, nullable=not notnull, primary_key=pk > 0,
                   default=default, position=cid + 1)
            for cid, name, col_type, notnull, default, pk in rows
        ]

    def _primary_key_columns(self, table: str) -> List[str]:
        rows = self._fetch_all("SELECT name, pk FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk", (table,))
        return [row[0] for row in rows]

    def list_foreign_keys(self, table: str, schema: str) -> List[ForeignKeyConstraint]:
        rows = self._fetch_all(
            'SELECT id, seq, "table", "from", "to", on_update, on_delete '
            "FROM pragma_foreign_key_list(?) ORDER BY id, seq",
            (table,)
        )

        grouped: Dict[int, dict] = {}
        for fk_id, _seq, parent, child_col, parent_col, on_update, on_delete in rows:
            entry = grouped.setdefault(fk_id, {
                "parent": parent, "child": [], "to": [],
                "on_update": on_update, "on_delete": on_delete,
            })
            entry["child"].append(child_col)
            entry["to"].append(parent_col)

        foreign_keys = []
        if not grouped:
            return foreign_keys

        # SQLite matches table and column names without regard to case;
        # report them the way the catalog spells them
        tables = _by_folded_name(self.list_tables(schema))
        child_columns = _by_folded_name(c.name for c in self.list_columns(table, schema))

        for fk_id, entry in sorted(grouped.items()):
            parent = tables.get(entry["parent"].lower(), entry["parent"])
            parent_columns = entry["to"]
            # REFERENCES parent without a column list targets the parent's primary key
            if any(col is None for col in parent_columns):
                parent_columns = self._primary_key_columns(parent)
            else:
                spelled = _by_folded_name(c.name for c in self.list_columns(parent, schema))
                parent_columns = [spelled.get(col.lower(), col) for col in parent_columns]
            foreign_keys.append(ForeignKeyConstraint(
                self.constraint_name(table, fk_id),
                table, [child_columns.get(col.lower(), col) for col in entry["child"]],
                parent, parent_columns,
                child_schema=schema,
                on_update=self.action(entry["on_update"]), on_delete=self.action(entry["on_delete"]),
            ))
        return foreign_keys


class PostgreSQLSource(MetadataSource):
    db_type = "postgresql"
    default_schema = "public"
    capabilities = frozenset(Capability)

    ACTIONS = {
        "a": ReferentialAction.NO_ACTION,
        "r": ReferentialAction.RESTRICT,
        "c": ReferentialAction.CASCADE,
        "n": ReferentialAction.SET_NULL,
        "d": ReferentialAction.SET_DEFAULT,
    }

    def database_name(self) -> str:
        return self._fetch_all("SELECT current_database()")[0][0]

    def list_tables(self, schema: str) -> List[str]:
        rows = self._fetch_all(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' ORDER BY table_name",
            (schema,)
        )
        return [row[0] for row in rows]

    def list_columns(self, table: str, schema: str) -> List[Column]:
        rows = self._fetch_all("""
            SELECT c.column_name, c.data_type, c.is_nullable, c.column_default, c.ordinal_position,
                   EXISTS (
                       SELECT 1
                       FROM information_schema.table_constraints tc
                       JOIN information_schema.key_column_usage kcu
                         ON tc.constraint_name = kcu.constraint_name
                        AND tc.constraint_schema = kcu.constraint_schema
                        AND tc.table_name = kcu.table_name
                       WHERE tc.constraint_type = 'PRIMARY KEY'
                         AND tc.table_schema = c.table_schema
                         AND tc.table_name = c.table_name
                         AND kcu.column_name = c.column_name
                   ) AS is_primary
            FROM information_schema.columns c
            WHERE c.table_schema = %s AND c.table_name = %s
            ORDER BY c.ordinal_position
        """, (schema, table))
        return [
            Column(name, type=data_type, nullable=is_nullable == "YES", primary_key=bool(is_primary),
                   default=default, position=position)
            for name, data_type, is_nullable, default, position, is_primary in rows
        ]

    def list_foreign_keys(self, table: str, schema: str) -> List[ForeignKeyConstraint]:
        rows = self._fetch_all("""
            SELECT con.conname, parent_ns.nspname, parent.relname,
                   array_agg(ca.attname::text ORDER BY k.ord),
                   array_agg(pa.attname::text ORDER BY k.ord),
                   con.confupdtype, con.confdeltype
            FROM pg_catalog.pg_constraint con
            JOIN pg_catalog.pg_class child ON child.oid = con.conrelid
            JOIN pg_catalog.pg_namespace child_ns ON child_ns.oid = child.relnamespace
            JOIN pg_catalog.pg_class parent ON parent.oid = con.confrelid
            JOIN pg_catalog.pg_namespace parent_ns ON parent_ns.oid = parent.relnamespace
            CROSS JOIN LATERAL unnest(con.conkey, con.confkey)
                WITH ORDINALITY AS k(child_attnum, parent_attnum, ord)
            JOIN pg_catalog.pg_attribute ca ON ca.attrelid = con.conrelid AND ca.attnum = k.child_attnum
            JOIN pg_catalog.pg_attribute pa ON pa.attrelid = con.confrelid AND pa.attnum = k.parent_attnum
            WHERE con.contype = 'f' AND child_ns.nspname = %s AND child.relname = %s
            GROUP BY con.conname, parent_ns.nspname, parent.relname, con.confupdtype, con.confdeltype
            ORDER BY con.conname
        """, (schema, table))

        foreign_keys = []
        for number, (name, parent_schema, parent, child_cols, parent_cols, upd, dele) in enumerate(rows, 1):
            foreign_keys.append(ForeignKeyConstraint(
                self.constraint_name(table, number, name),
                table, child_cols, parent, parent_cols,
                child_schema=schema, parent_schema=parent_schema,
                on_update=self.action(self.ACTIONS.get(upd)),
                on_delete=self.action(self.ACTIONS.get(dele)),
            ))
        return foreign_keys


def open_source(con, logger: Optional[logging.Logger] = None, **filters) -> MetadataSource:
    """Match a DB-API connection to the metadata source for its product"""
    if isinstance(con, sqlite3.Connection):
        return SQLiteSource(con, logger, **filters)
    if isinstance(con, psycopg2.extensions.connection):
        return PostgreSQLSource(con, logger, **filters)

    supported = ["sqlite3.Connection", "psycopg2.extensions.connection"]
    error_msg = (
        f"Unsupported database connection type: {type(con).__name__}. "
        f"Supported types are: {', '.join(supported)}"
    )
    if logger:
        logger.error(error_msg)
    raise UnsupportedDatabase(error_msg)


def connect(target: str):
    """
    Open a connection from a command line target: a postgresql:// (or
    postgres://) URL, a sqlite:/// URL, or a path to a SQLite file.
    """
    if target.startswith(("postgresql://", "postgres://")):
        return psycopg2.connect(target)
    if target.startswith("sqlite:///"):
        target = target[len("sqlite:///"):]
    if target != ":memory:" and not os.path.exists(target):
        raise UnsupportedDatabase(f"No such database file: {target}")
    return sqlite3.connect(target)
