"""
Formula tokenizer.

This module defines the tokenizer contract consumed by the dependency index
and the fixup engine (Token, TokenKind, Tokenizer) and DaxTokenizer, the
default implementation, which configures sqlglot's tokenizer with DAX quoting
rules:

- ``"text"`` is a string literal (``""`` escapes a quote)
- ``[Name]`` is a bracketed reference (``]]`` escapes a bracket)
- ``'Table Name'`` is a quoted table name (``''`` escapes a quote), and
  ``'Table Name'[Name]`` a quoted qualified reference
- ``--``, ``//`` and ``/* */`` are comments
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlglot import tokens as sqlglot_tokens
from sqlglot.errors import TokenError

from semantic_editor.exceptions import TokenizationError


class TokenKind(str, Enum):
    """Classification of a token span.

    Attributes:
        IDENTIFIER: Unquoted word (function name, keyword, table name, ...).
        BRACKETED_REFERENCE: ``[Name]``.
        QUOTED_QUALIFIED_REFERENCE: ``'Table'`` or ``'Table'[Name]``.
        STRING_LITERAL: ``"text"``.
        COMMENT: Line or block comment.
        OTHER: Numbers, operators, punctuation.
    """

    IDENTIFIER = "identifier"
    BRACKETED_REFERENCE = "bracketed_reference"
    QUOTED_QUALIFIED_REFERENCE = "quoted_qualified_reference"
    STRING_LITERAL = "string_literal"
    COMMENT = "comment"
    OTHER = "other"


@dataclass(frozen=True)
class Token:
    """One classified span of formula text.

    Attributes:
        start: Start offset (inclusive).
        end: End offset (exclusive).
        kind: Token classification.
        text: Source text of the span, delimiters and escapes included.
    """

    start: int
    end: int
    kind: TokenKind
    text: str

    @property
    def span(self) -> tuple[int, int]:
        return (self.start, self.end)


class Tokenizer(ABC):
    """Tokenizer contract.

    A tokenizer is a pure function of its input. It must return tokens in
    source order with non-overlapping spans and raise TokenizationError when
    the text cannot be scanned (for example an unterminated literal).
    """

    @abstractmethod
    def tokenize(self, text: str) -> list[Token]:
        """Split formula text into classified spans."""


class _DaxScanner(sqlglot_tokens.Tokenizer):
    QUOTES = ['"']
    STRING_ESCAPES = ['"']
    IDENTIFIERS = [("[", "]"), "'"]
    IDENTIFIER_ESCAPES = ["]", "'"]
    COMMENTS = ["--", "//", ("/*", "*/")]


class DaxTokenizer(Tokenizer):
    """DAX tokenizer built on sqlglot.

    Example:
        >>> tokens = DaxTokenizer().tokenize("SUM('Sales'[Amount]) + [Tax]")
        >>> [t.kind.value for t in tokens if t.kind != TokenKind.OTHER]
        ['identifier', 'quoted_qualified_reference', 'bracketed_reference']
    """

    def tokenize(self, text: str) -> list[Token]:
        if not text:
            return []
        try:
            raw_tokens = _DaxScanner().tokenize(text)
        except TokenError as e:
            raise TokenizationError(f"Failed to tokenize expression: {e}", text) from e

        result: list[Token] = []
        position = 0
        i = 0
        while i < len(raw_tokens):
            raw = raw_tokens[i]
            start, end = raw.start, raw.end + 1
            self._add_comment(text, position, start, result)

            kind = self._classify(raw, text[start:end])
            if kind == TokenKind.QUOTED_QUALIFIED_REFERENCE and i + 1 < len(raw_tokens):
                following = raw_tokens[i + 1]
                if (
                    following.start == end
                    and following.token_type == sqlglot_tokens.TokenType.IDENTIFIER
                    and text[following.start] == "["
                ):
                    end = following.end + 1
                    i += 1

            result.append(Token(start, end, kind, text[start:end]))
            position = end
            i += 1

        self._add_comment(text, position, len(text), result)
        return result

    @staticmethod
    def _classify(raw: sqlglot_tokens.Token, source: str) -> TokenKind:
        token_type = raw.token_type
        if token_type == sqlglot_tokens.TokenType.IDENTIFIER:
            if source.startswith("["):
                return TokenKind.BRACKETED_REFERENCE
            return TokenKind.QUOTED_QUALIFIED_REFERENCE
        if token_type == sqlglot_tokens.TokenType.STRING:
            return TokenKind.STRING_LITERAL
        if source[:1].isalpha() or source[:1] == "_":
            return TokenKind.IDENTIFIER
        return TokenKind.OTHER

    @staticmethod
    def _add_comment(text: str, start: int, end: int, result: list[Token]) -> None:
        # Anything between two tokens that is not whitespace is a comment
        gap = text[start:end]
        stripped = gap.strip()
        if not stripped:
            return
        offset = start + gap.index(stripped)
        result.append(Token(offset, offset + len(stripped), TokenKind.COMMENT, stripped))


_default_tokenizer: Optional[DaxTokenizer] = None


def default_tokenizer() -> DaxTokenizer:
    """Return the shared DaxTokenizer instance (it holds no state)."""
    global _default_tokenizer
    if _default_tokenizer is None:
        _default_tokenizer = DaxTokenizer()
    return _default_tokenizer
