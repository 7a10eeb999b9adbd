"""Tests for docalign.token_bridge: document ↔ engine token conversion."""
from __future__ import annotations

import pytest

from docalign.annotation_types import ExternalToken
from docalign.document_types import TextSpan, Token
from docalign.token_bridge import (
    from_external,
    normalize_word,
    restore_word,
    sentence_to_external,
    to_external,
    tokens_from_external,
)


class TestToExternal:
    def test_open_paren_rewritten_span_unchanged(self) -> None:
        tok = Token(token_index=0, text="(", text_span=TextSpan(4, 5))
        ext = to_external(tok)
        assert ext.word == "（"
        assert (ext.begin, ext.end) == (4, 5)

    def test_close_paren_rewritten(self) -> None:
        tok = Token(token_index=2, text=")", text_span=TextSpan(14, 15))
        assert to_external(tok).word == "）"

    def test_document_token_not_mutated(self) -> None:
        tok = Token(token_index=0, text="(", text_span=TextSpan(4, 5))
        to_external(tok)
        assert tok.text == "("

    def test_rewrite_can_be_disabled(self) -> None:
        tok = Token(token_index=0, text="(", text_span=TextSpan(4, 5))
        assert to_external(tok, normalize_brackets=False).word == "("

    def test_paren_inside_word_left_alone(self) -> None:
        tok = Token(token_index=0, text="f(x)", text_span=TextSpan(0, 4))
        assert to_external(tok).word == "f(x)"

    def test_zero_length_forwarded(self) -> None:
        tok = Token(token_index=0, text="", text_span=TextSpan(7, 7))
        ext = to_external(tok)
        assert ext.length == 0
        assert (ext.begin, ext.end) == (7, 7)

    def test_missing_span_rejected(self) -> None:
        with pytest.raises(ValueError, match="no text span"):
            to_external(Token(token_index=3, text="x"))


class TestRoundTrip:
    @pytest.mark.parametrize("text", ["(", ")", "word", ""])
    def test_length_preserved(self, text: str) -> None:
        span = TextSpan(10, 10 + len(text))
        fields = from_external(to_external(Token(0, text, span)))
        assert fields.text_span.length == span.length
        assert fields.text_span == span

    def test_brackets_restored_by_default(self) -> None:
        fields = from_external(ExternalToken(word="）", begin=3, end=4))
        assert fields.text == ")"

    def test_restore_can_be_disabled(self) -> None:
        fields = from_external(ExternalToken(word="）", begin=3, end=4), restore_brackets=False)
        assert fields.text == "）"


class TestHelpers:
    def test_normalize_and_restore_are_inverse(self) -> None:
        for word in ("(", ")", "x"):
            assert restore_word(normalize_word(word)) == word

    def test_sentence_to_external_keeps_order(self) -> None:
        toks = [
            Token(0, "(", TextSpan(0, 1)),
            Token(1, "CROSSTALK", TextSpan(2, 11)),
            Token(2, ")", TextSpan(12, 13)),
        ]
        words = [t.word for t in sentence_to_external(toks)]
        assert words == ["（", "CROSSTALK", "）"]

    def test_tokens_from_external_renumbers_from_zero(self) -> None:
        ext = (
            ExternalToken("Hello", 5, 10),
            ExternalToken("（", 11, 12),
        )
        toks = tokens_from_external(ext)
        assert [t.token_index for t in toks] == [0, 1]
        assert [t.text for t in toks] == ["Hello", "("]
        assert toks[1].text_span == TextSpan(11, 12)
