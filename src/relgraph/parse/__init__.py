from .parse import parse, main

__all__ = [
    'parse',
    'main'
]
