import os
from typing import Iterable, List

from ..core.model import Table
from ..core.strategy import Snapshot
from ..core.util import get_name

INSERTION_ORDER_FILE = "insertionOrder.txt"
DELETION_ORDER_FILE = "deletionOrder.txt"


def format_order(tables: Iterable[Table], qualified: bool = False) -> str:
    """One table per line, newline terminated"""
    return "".join(get_name(table, qualified) + "\n" for table in tables)


def write_orders(snapshot: Snapshot, output_dir: str, qualified: bool = False) -> List[str]:
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for filename, tables in ((INSERTION_ORDER_FILE, snapshot.insertion_order),
                             (DELETION_ORDER_FILE, snapshot.deletion_order)):
        path = os.path.join(output_dir, filename)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(format_order(tables, qualified))
        written.append(path)
    return written
