import logging
import sys
from argparse import ArgumentParser
from typing import Dict, List, Optional, Type

from .. import __version__
from .commands import Command, Diagram, Levels, Orders, Run


def build_logger(verbose: int) -> logging.Logger:
    logger = logging.getLogger("relgraph")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose > 1 else logging.INFO if verbose else logging.WARNING)
    return logger


class CommandParser:
    """Parses command line and executes appropriate commands"""
    def __init__(self, cmds: Dict[str, Type[Command]]) -> None:
        self.parser = ArgumentParser(prog="relgraph")
        self.parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
        self.parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG")
        self.subp = self.parser.add_subparsers(dest="cmd", required=True)
        self.cmds: Dict[str, Command] = {}
        # Initializes commands
        for name, cls in cmds.items():
            self.cmds[name] = cls(self.subp)

    def parse_args(self, argv: Optional[List[str]] = None) -> int:
        args = self.parser.parse_args(argv)
        cmd: Command = self.cmds[args.cmd]
        return cmd.run(args, build_logger(args.verbose))


def parse(argv: Optional[List[str]] = None) -> int:
    parser = CommandParser({
        "orders": Orders,
        "diagram": Diagram,
        "levels": Levels,
        "run": Run,
    })
    return parser.parse_args(argv)


def main() -> None:
    sys.exit(parse())
