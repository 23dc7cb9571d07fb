from typing import List, Optional


class RelgraphError(Exception):
    """Base class for every error raised by relgraph"""


class UnsupportedDatabase(RelgraphError):
    """Raised when no metadata source matches a connection, or the source cannot report what was asked"""


class MalformedSchemaError(RelgraphError):
    """Raised when a schema model references undefined tables or columns"""
    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__("Malformed schema: " + "; ".join(problems))


class GraphIntegrityError(RelgraphError):
    """
    Raised when cycle resolution leaves the NORMAL subgraph cyclic.
    This points to a bug in the resolver rather than a problem in the data.
    """
    def __init__(self, message: str, tables: Optional[List[str]] = None):
        self.tables = tables or []
        if self.tables:
            message = f"{message}: {', '.join(self.tables)}"
        super().__init__(message)
