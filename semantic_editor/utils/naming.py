"""
Reference text helpers.

Quoting rules for writing object names back into DAX formula text.
"""

import re

# Names matching this pattern can be written without quotes as table names
_PLAIN_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

DAX_RESERVED_WORDS = {
    "and", "asc", "at", "boolean", "by", "calendar", "column", "currency",
    "date", "datetime", "define", "desc", "double", "evaluate", "false",
    "in", "integer", "measure", "not", "or", "order", "return", "start",
    "string", "table", "time", "true", "var",
}


def needs_quoting(name: str) -> bool:
    """Check if a table name needs single quotes inside a formula.

    Rules:
    - Names with spaces or special characters need quotes
    - Names starting with a digit need quotes
    - Reserved words need quotes

    Example:
        >>> needs_quoting("Sales")
        False
        >>> needs_quoting("Sales 2024")
        True
    """
    if not name:
        return True
    if not _PLAIN_NAME.match(name):
        return True
    return name.lower() in DAX_RESERVED_WORDS


def quote_table_name(name: str, always: bool = False) -> str:
    """Write a table name as it appears in a formula.

    Example:
        >>> quote_table_name("O'Brien Sales")
        "'O''Brien Sales'"
    """
    if always or needs_quoting(name):
        escaped = name.replace("'", "''")
        return f"'{escaped}'"
    return name


def bracket_name(name: str) -> str:
    """Write a column or measure name as ``[Name]``.

    Example:
        >>> bracket_name("Total [Net]")
        '[Total [Net]]]'
    """
    return "[" + name.replace("]", "]]") + "]"
