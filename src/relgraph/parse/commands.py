import sqlite3
from sys import stdout
from typing import Optional

import psycopg2
from colorama import Fore, Style

from ..core.engine import Engine, RunConfig, RunContext
from ..core.exceptions import RelgraphError
from ..core.source import connect
from ..render import DotWriter, format_order


class Command:
    """Base type: registers its subparser and runs against one database"""
    name = ""
    help = ""

    def __init__(self, subp) -> None:
        self.subp = subp.add_parser(self.name, help=self.help)
        self.subp.add_argument("target", type=str, help="SQLite file, sqlite:/// URL or postgresql:// URL")
        self.subp.add_argument("-s", "--schema", type=str, default=None, help="schema to document")
        self.subp.add_argument("-db", "--database", type=str, default=None, help="database name used in output")
        self.subp.add_argument("-i", "--include", type=str, default=None, help="regex of tables to include")
        self.subp.add_argument("-I", "--exclude", type=str, default=None, help="regex of tables to exclude")
        self.subp.add_argument("--qualified", action="store_true", help="list tables as schema.table")
        self.setup()

    def setup(self) -> None:
        pass

    def config(self, args) -> RunConfig:
        return RunConfig(
            output_dir=getattr(args, "output", "output"),
            database=args.database,
            schema=args.schema,
            include=args.include,
            exclude=args.exclude,
            qualified=args.qualified,
        )

    def run(self, args, logger=None) -> int:
        config = self.config(args)
        stdout.write(Style.BRIGHT)
        try:
            con = connect(args.target)
            try:
                engine = Engine.from_config(con, config, logger)
                return self.execute(engine, config, args)
            finally:
                con.close()
        except (RelgraphError, sqlite3.Error, psycopg2.Error, OSError) as e:
            print(f"{Fore.RED}[!] {e}")
            return 1
        finally:
            stdout.write(Style.RESET_ALL)

    def execute(self, engine: Engine, config: RunConfig, args) -> int:
        raise NotImplementedError

    def resolve(self, engine: Engine, config: RunConfig) -> RunContext:
        return engine.resolve(config.schema, config.database)


class Orders(Command):
    name = "orders"
    help = "print the insertion (or deletion) order"

    def setup(self) -> None:
        self.subp.add_argument("--deletion", action="store_true", help="print the deletion order instead")

    def execute(self, engine, config, args) -> int:
        snapshot = self.resolve(engine, config).snapshot
        tables = snapshot.deletion_order if args.deletion else snapshot.insertion_order
        stdout.write(Style.RESET_ALL)
        stdout.write(format_order(tables, config.qualified))
        return 0


class Diagram(Command):
    name = "diagram"
    help = "print the relationship diagram in DOT format"

    def setup(self) -> None:
        self.subp.add_argument("-t", "--table", type=str, default=None, help="one-degree diagram of this table")

    def execute(self, engine, config, args) -> int:
        snapshot = self.resolve(engine, config).snapshot
        writer = DotWriter(snapshot, config.qualified)
        if args.table is None:
            text = writer.relationships()
        else:
            table = snapshot.get_table(args.table, config.schema)
            if table is None:
                print(f"{Fore.RED}[!] No table named {args.table}")
                return 1
            text = writer.one_degree(table)
        stdout.write(Style.RESET_ALL)
        stdout.write(text)
        return 0


class Levels(Command):
    name = "levels"
    help = "print dependencies, dependency levels and deferred relationships"

    def execute(self, engine, config, args) -> int:
        snapshot = self.resolve(engine, config).snapshot
        stdout.write(Style.RESET_ALL)
        print(snapshot.visualize())
        return 0


class Run(Command):
    name = "run"
    help = "write order listings, XML summary and diagrams to a directory"

    def setup(self) -> None:
        self.subp.add_argument("-o", "--output", type=str, default="output", help="output directory")

    def execute(self, engine, config, args) -> int:
        written = engine.document(config)
        print(f"{Fore.GREEN}Wrote {len(written)} files to {config.output_dir}")
        return 0
