"""Conversion between document tokens and the engine's token form.

The engine's head finder breaks on bracket-only inputs such as
"( CROSSTALK )", so ASCII parentheses are rewritten to their full-width
forms on the engine-facing copy. The rewrite is one character for one
character, so offsets and lengths are unaffected. The document's own
Token is never modified.
"""
from __future__ import annotations

from dataclasses import dataclass

from docalign.annotation_types import ExternalToken
from docalign.document_types import TextSpan, Token

BRACKET_REWRITES: dict[str, str] = {"(": "（", ")": "）"}
BRACKET_RESTORES: dict[str, str] = {v: k for k, v in BRACKET_REWRITES.items()}


@dataclass(frozen=True, slots=True)
class TokenFields:
    """Document-side token fields recovered from an engine token."""

    text: str
    text_span: TextSpan


def normalize_word(text: str) -> str:
    return BRACKET_REWRITES.get(text, text)


def restore_word(word: str) -> str:
    return BRACKET_RESTORES.get(word, word)


def to_external(token: Token, *, normalize_brackets: bool = True) -> ExternalToken:
    """Build the engine-facing copy of ``token``.

    Tokens without a span cannot be placed in the document text, so they
    are rejected. Zero-length spans pass through unchanged.
    """
    span = token.text_span
    if span is None:
        raise ValueError(f"token {token.token_index} ({token.text!r}) has no text span")
    word = normalize_word(token.text) if normalize_brackets else token.text
    return ExternalToken(word=word, begin=span.start, end=span.start + span.length)


def from_external(
    external: ExternalToken, *, restore_brackets: bool = True,
) -> TokenFields:
    word = restore_word(external.word) if restore_brackets else external.word
    return TokenFields(
        text=word,
        text_span=TextSpan(external.begin, external.begin + external.length),
    )


def sentence_to_external(
    tokens: list[Token], *, normalize_brackets: bool = True,
) -> list[ExternalToken]:
    return [to_external(t, normalize_brackets=normalize_brackets) for t in tokens]


def tokens_from_external(
    externals: tuple[ExternalToken, ...] | list[ExternalToken],
    *,
    restore_brackets: bool = True,
) -> list[Token]:
    """Build document Tokens, numbered from 0, from engine tokens."""
    out: list[Token] = []
    for i, ext in enumerate(externals):
        fields = from_external(ext, restore_brackets=restore_brackets)
        out.append(Token(token_index=i, text=fields.text, text_span=fields.text_span))
    return out
