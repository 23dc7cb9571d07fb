import re
from typing import Tuple


# Returns "schema.name", or just the name when the schema is empty
def format_key(key: Tuple[str, str]) -> str:
    schema, name = key
    return f"{schema}.{name}" if schema else name

# Returns the name a table is listed under in order files and diagrams
def get_name(table, qualified: bool = False) -> str:
    return table.full_name if qualified else table.name

# Returns a name that is safe to use as a file name on every platform
def safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", name)
