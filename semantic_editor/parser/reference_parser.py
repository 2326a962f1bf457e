"""
Reference extraction from tokenized formula text.

This module turns a token sequence into ReferenceOccurrence records: the
places in a formula that name a table, a column or a measure, with the spans
of the table part and of the object part kept separate so that a table rename
and a column rename each rewrite only their own part.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from semantic_editor.parser.tokenizer import Token, TokenKind


@dataclass(frozen=True)
class ReferenceOccurrence:
    """One reference found in a formula.

    Forms:
    - ``[Name]``: object_name only
    - ``'Table'[Name]`` / ``Table[Name]``: table_name and object_name
    - ``'Table'``: table_name only
    - ``Table`` (bare identifier not followed by ``(``): table_name only,
      with ``bare=True``; resolved only if a table has that name. Names
      declared with ``VAR`` are local variables and never references

    Attributes:
        start: Start offset of the whole reference.
        end: End offset of the whole reference (exclusive).
        table_name: Unescaped table name, if any.
        table_span: Span of the table part (quotes included).
        object_name: Unescaped column/measure name, if any.
        object_span: Span of the ``[Name]`` part.
        bare: True for unquoted, unqualified identifiers.
    """

    start: int
    end: int
    table_name: Optional[str] = None
    table_span: Optional[tuple[int, int]] = None
    object_name: Optional[str] = None
    object_span: Optional[tuple[int, int]] = None
    bare: bool = False

    def display(self) -> str:
        """Render the reference the way it was written, minus escapes."""
        table = f"'{self.table_name}'" if self.table_name is not None else ""
        column = f"[{self.object_name}]" if self.object_name is not None else ""
        return table + column


def unescape_bracketed(raw: str) -> str:
    """``[A]]B]`` -> ``A]B``."""
    return raw[1:-1].replace("]]", "]")


def unescape_quoted(raw: str) -> str:
    """``'O''Brien'`` -> ``O'Brien``."""
    return raw[1:-1].replace("''", "'")


def split_quoted_qualified(raw: str) -> tuple[str, Optional[str]]:
    """Split ``'Table'[Name]`` into its quoted table part and bracket part."""
    i = 1
    while i < len(raw):
        if raw[i] == "'":
            if i + 1 < len(raw) and raw[i + 1] == "'":
                i += 2
                continue
            break
        i += 1
    table_part = raw[: i + 1]
    rest = raw[i + 1 :]
    return table_part, (rest or None)


def parse_references(tokens: list[Token]) -> list[ReferenceOccurrence]:
    """Extract reference occurrences from a token sequence.

    String literals, comments, other tokens and local variables (the name
    after ``VAR`` and every bare use of it) never produce references.

    Args:
        tokens: Tokens in source order.

    Returns:
        References in source order.

    Example:
        >>> refs = parse_references(DaxTokenizer().tokenize("Sales[Amount] * [Rate]"))
        >>> [(r.table_name, r.object_name) for r in refs]
        [('Sales', 'Amount'), (None, 'Rate')]
    """
    code = [t for t in tokens if t.kind != TokenKind.COMMENT]
    variables = _declared_variables(code)
    references: list[ReferenceOccurrence] = []

    i = 0
    while i < len(code):
        token = code[i]
        following = code[i + 1] if i + 1 < len(code) else None

        if token.kind == TokenKind.BRACKETED_REFERENCE:
            references.append(
                ReferenceOccurrence(
                    start=token.start,
                    end=token.end,
                    object_name=unescape_bracketed(token.text),
                    object_span=token.span,
                )
            )

        elif token.kind == TokenKind.QUOTED_QUALIFIED_REFERENCE:
            table_part, column_part = split_quoted_qualified(token.text)
            table_end = token.start + len(table_part)
            references.append(
                ReferenceOccurrence(
                    start=token.start,
                    end=token.end,
                    table_name=unescape_quoted(table_part),
                    table_span=(token.start, table_end),
                    object_name=unescape_bracketed(column_part) if column_part else None,
                    object_span=(table_end, token.end) if column_part else None,
                )
            )

        elif token.kind == TokenKind.IDENTIFIER:
            if (
                token.text.upper() == "VAR"
                and following is not None
                and following.kind == TokenKind.IDENTIFIER
            ):
                i += 2
                continue
            if (
                following is not None
                and following.kind == TokenKind.BRACKETED_REFERENCE
                and following.start == token.end
            ):
                references.append(
                    ReferenceOccurrence(
                        start=token.start,
                        end=following.end,
                        table_name=token.text,
                        table_span=token.span,
                        object_name=unescape_bracketed(following.text),
                        object_span=following.span,
                    )
                )
                i += 2
                continue
            is_call = following is not None and following.text == "("
            if not is_call and token.text.lower() not in variables:
                references.append(
                    ReferenceOccurrence(
                        start=token.start,
                        end=token.end,
                        table_name=token.text,
                        table_span=token.span,
                        bare=True,
                    )
                )

        i += 1

    return references


def _declared_variables(code: list[Token]) -> set[str]:
    """Lower-cased names declared by ``VAR <name>`` anywhere in the formula."""
    return {
        following.text.lower()
        for token, following in zip(code, code[1:])
        if token.kind == TokenKind.IDENTIFIER
        and token.text.upper() == "VAR"
        and following.kind == TokenKind.IDENTIFIER
    }
