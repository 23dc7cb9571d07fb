import logging
from typing import List, Optional

from ..core.strategy import Snapshot
from .dot import DotWriter
from .orders import DELETION_ORDER_FILE, INSERTION_ORDER_FILE, format_order, write_orders
from .summary import build_summary, write_summary


def write_all(snapshot: Snapshot, output_dir: str, qualified: bool = False,
              logger: Optional[logging.Logger] = None) -> List[str]:
    """Write order listings, XML summary and DOT diagrams for one snapshot"""
    written = write_orders(snapshot, output_dir, qualified)
    written.append(write_summary(snapshot, output_dir))
    written.extend(DotWriter(snapshot, qualified).write_all(output_dir))

    if logger:
        logger.info(f"Wrote {len(written)} files to {output_dir}")
    return written


__all__ = [
    'DELETION_ORDER_FILE',
    'INSERTION_ORDER_FILE',
    'DotWriter',
    'build_summary',
    'format_order',
    'write_all',
    'write_orders',
    'write_summary'
]
