from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .exceptions import MalformedSchemaError
from .util import format_key


TableKey = Tuple[str, str]


class ReferentialAction(Enum):
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    @classmethod
    def parse(cls, value) -> "ReferentialAction":
        """Accept an action, its SQL spelling in any case, or None"""
        if isinstance(value, ReferentialAction):
            return value
        if value is None:
            return cls.NO_ACTION
        normalized = " ".join(str(value).replace("_", " ").upper().split())
        for action in cls:
            if action.value == normalized:
                return action
        raise ValueError(f"Unknown referential action: {value!r}")


class Column:
    def __init__(
        self, name: str, type: str = "", nullable: bool = True, primary_key: bool = False,
        default: Optional[str] = None, position: Optional[int] = None
        ) -> None:
        self.name = name
        self.type = type
        self.nullable = nullable
        self.primary_key = primary_key
        self.default = default
        self.position = position
        self.table: Optional["Table"] = None

    def __repr__(self):
        return f"Column({self.name!r}, {self.type!r})"


class Table:
    """A table identified by (schema, name); owns its columns"""

    def __init__(self, name: str, columns: Iterable[Column] = (), schema: str = "") -> None:
        self.schema = schema
        self.name = name
        self.columns: Tuple[Column, ...] = tuple(columns)
        self._outgoing: List["ForeignKeyConstraint"] = []
        self._incoming: List["ForeignKeyConstraint"] = []

        for position, column in enumerate(self.columns, 1):
            column.table = self
            if column.position is None:
                column.position = position

    def __repr__(self):
        return f"Table({self.full_name!r})"

    @property
    def key(self) -> TableKey:
        return (self.schema, self.name)

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    @property
    def outgoing(self) -> Tuple["ForeignKeyConstraint", ...]:
        """Constraints where this table is the child (referencer)"""
        return tuple(self._outgoing)

    @property
    def incoming(self) -> Tuple["ForeignKeyConstraint", ...]:
        """Constraints where this table is the parent (referenced)"""
        return tuple(self._incoming)

    @property
    def primary_key(self) -> List[Column]:
        return [c for c in self.columns if c.primary_key]

    def get_column(self, name: str) -> Optional[Column]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class ForeignKeyConstraint:
    """
    Child column(s) referencing parent column(s).
    Tables are referenced by name and resolved when the owning SchemaModel is built.
    """

    def __init__(
        self, name: str, child_table: str, child_columns: Iterable[str],
        parent_table: str, parent_columns: Iterable[str],
        child_schema: str = "", parent_schema: Optional[str] = None,
        on_update=ReferentialAction.NO_ACTION, on_delete=ReferentialAction.NO_ACTION
        ) -> None:
        self.name = name
        self.child_key: TableKey = (child_schema, child_table)
        self.parent_key: TableKey = (child_schema if parent_schema is None else parent_schema, parent_table)
        self.child_columns: Tuple[str, ...] = tuple(child_columns)
        self.parent_columns: Tuple[str, ...] = tuple(parent_columns)
        self.on_update = ReferentialAction.parse(on_update)
        self.on_delete = ReferentialAction.parse(on_delete)

        # Resolved by SchemaModel
        self.child: Optional[Table] = None
        self.parent: Optional[Table] = None

    def __repr__(self):
        return f"ForeignKeyConstraint({self.name!r}, {self.child_key} -> {self.parent_key})"

    def __str__(self):
        child = ", ".join(self.child_columns)
        parent = ", ".join(self.parent_columns)
        return f"{format_key(self.child_key)}({child}) -> {format_key(self.parent_key)}({parent})"

    @property
    def identity(self) -> tuple:
        return (self.child_key, self.child_columns, self.parent_key, self.parent_columns)

    @property
    def sort_key(self) -> tuple:
        return (self.child_key, self.parent_key, self.name, self.child_columns, self.parent_columns)

    @property
    def is_self_referencing(self) -> bool:
        return self.child_key == self.parent_key


class SchemaModel:
    """
    Validated set of tables and foreign keys for one schema.

    Construction fails with MalformedSchemaError when a constraint references a
    missing table or column, or when its two column lists differ in length.
    Nothing is linked unless every check passes.
    """

    def __init__(
        self, tables: Iterable[Table], foreign_keys: Iterable[ForeignKeyConstraint] = (),
        database: str = "", schema: str = "", db_type: str = ""
        ) -> None:
        self.database = database
        self.schema = schema
        self.db_type = db_type

        tables = list(tables)
        foreign_keys = list(foreign_keys)
        problems = self._validate(tables, foreign_keys)
        if problems:
            raise MalformedSchemaError(problems)

        self._tables: Dict[TableKey, Table] = {t.key: t for t in sorted(tables, key=lambda t: t.key)}
        self._foreign_keys: Tuple[ForeignKeyConstraint, ...] = tuple(sorted(foreign_keys, key=lambda fk: fk.sort_key))

        for fk in self._foreign_keys:
            fk.child = self._tables[fk.child_key]
            fk.parent = self._tables[fk.parent_key]
            fk.child._outgoing.append(fk)
            fk.parent._incoming.append(fk)

    @staticmethod
    def _validate(tables: List[Table], foreign_keys: List[ForeignKeyConstraint]) -> List[str]:
        problems = []
        by_key: Dict[TableKey, Table] = {}
        for table in tables:
            if table.key in by_key:
                problems.append(f"duplicate table {table.full_name}")
            by_key[table.key] = table

            seen = set()
            for column in table.columns:
                if column.name in seen:
                    problems.append(f"duplicate column {table.full_name}.{column.name}")
                seen.add(column.name)

        identities = set()
        for fk in foreign_keys:
            label = f"constraint {fk.name!r}"
            if fk.identity in identities:
                problems.append(f"{label} duplicates {fk}")
            identities.add(fk.identity)

            if not fk.child_columns or not fk.parent_columns:
                problems.append(f"{label} has no columns")
            elif len(fk.child_columns) != len(fk.parent_columns):
                problems.append(
                    f"{label} maps {len(fk.child_columns)} child columns "
                    f"to {len(fk.parent_columns)} parent columns"
                )

            for side, key, columns in (("child", fk.child_key, fk.child_columns),
                                       ("parent", fk.parent_key, fk.parent_columns)):
                table = by_key.get(key)
                if table is None:
                    problems.append(f"{label} references undefined {side} table {format_key(key)}")
                    continue
                for name in columns:
                    if table.get_column(name) is None:
                        problems.append(f"{label} references undefined column {table.full_name}.{name}")
        return problems

    @property
    def tables(self) -> Tuple[Table, ...]:
        return tuple(self._tables.values())

    @property
    def foreign_keys(self) -> Tuple[ForeignKeyConstraint, ...]:
        return self._foreign_keys

    def get_table(self, name: str, schema: Optional[str] = None) -> Optional[Table]:
        return self._tables.get((self.schema if schema is None else schema, name))

    def __len__(self):
        return len(self._tables)

    def __contains__(self, key: TableKey):
        return key in self._tables
