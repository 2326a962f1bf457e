"""
Formula parsing module.

This package contains the tokenizer contract, the default DAX tokenizer and
the extraction of reference occurrences from token sequences.
"""

from semantic_editor.parser.reference_parser import ReferenceOccurrence, parse_references
from semantic_editor.parser.tokenizer import DaxTokenizer, Token, TokenKind, Tokenizer

__all__ = [
    "DaxTokenizer",
    "ReferenceOccurrence",
    "Token",
    "TokenKind",
    "Tokenizer",
    "parse_references",
]
