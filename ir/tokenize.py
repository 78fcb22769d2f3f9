"""
SCRIPTORIUM - Tokenizer

Single-pass, deterministic tokenizer for content block text.

Characters fall into three classes:
- whitespace
- word: alphanumeric, apostrophe, or any non-ASCII character (so Hebrew
  with combining points and Greek with diacritics stay whole)
- punctuation: everything else

A token boundary occurs wherever the class changes. Offsets are half-open
character offsets into the original string, so joining every token's text
reproduces the input exactly.
"""
from __future__ import annotations

from typing import List

from ir.model import Token, TokenType


def _char_class(ch: str) -> TokenType:
    if ch.isspace():
        return TokenType.WHITESPACE
    if ch.isalnum() or ch == "'" or ord(ch) > 127:
        return TokenType.WORD
    return TokenType.PUNCTUATION


def tokenize(text: str) -> List[Token]:
    """Split text into word, whitespace and punctuation runs."""
    tokens: List[Token] = []
    if not text:
        return tokens

    start = 0
    current = _char_class(text[0])
    for i in range(1, len(text) + 1):
        kind = _char_class(text[i]) if i < len(text) else None
        if kind == current:
            continue
        index = len(tokens)
        tokens.append(
            Token(
                id=f"t{index}",
                index=index,
                char_start=start,
                char_end=i,
                text=text[start:i],
                type=current.value,
            )
        )
        if kind is not None:
            start = i
            current = kind
    return tokens


def word_tokens(text: str) -> List[Token]:
    """Tokenize and keep only word tokens (indices are preserved)."""
    return [t for t in tokenize(text) if t.is_word()]
