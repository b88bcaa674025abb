"""Statement ingest: Swiss CSV adapter and multi-file helpers."""

from .swiss_statement_csv import load_statement, parse_statement_bytes, parse_statement_text
from .utils import build_history, load_statements

__all__ = [
    "load_statement",
    "parse_statement_bytes",
    "parse_statement_text",
    "load_statements",
    "build_history",
]
