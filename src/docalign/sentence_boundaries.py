"""Rebuild engine sentence objects from a known sentence partition.

The engine would normally run its own splitter over the token stream.
On input that is already segmented that splitter is unreliable, so this
module produces the same per-sentence objects directly from the
partition we already have:

  char span   = [first token begin, last token end)
  text        = document slice (SUBSTRING) or space-joined words (JOIN_TOKENS)
  token range = running [token_begin, token_end) across the whole section
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from docalign.annotation_types import ExternalToken, SentenceAnnotation
from docalign.config import SentenceTextMode
from docalign.errors import EmptySentenceError

log = logging.getLogger(__name__)


def sentence_text(
    tokens: Sequence[ExternalToken], document_text: str, mode: SentenceTextMode,
) -> str:
    if mode is SentenceTextMode.SUBSTRING:
        return document_text[tokens[0].begin:tokens[-1].end]
    return " ".join(t.word for t in tokens)


def reconstruct_sentences(
    sentences: Sequence[Sequence[ExternalToken]],
    document_text: str,
    mode: SentenceTextMode,
) -> list[SentenceAnnotation]:
    """Return one SentenceAnnotation per input token list, in order.

    Raises EmptySentenceError on the first sentence with no tokens.
    """
    out: list[SentenceAnnotation] = []
    token_offset = 0
    for i, tokens in enumerate(sentences):
        if not tokens:
            raise EmptySentenceError(i)
        begin = tokens[0].begin
        end = tokens[-1].end
        token_end = token_offset + len(tokens)
        out.append(SentenceAnnotation(
            text=sentence_text(tokens, document_text, mode),
            char_begin=begin,
            char_end=end,
            tokens=tuple(tokens),
            token_begin=token_offset,
            token_end=token_end,
        ))
        token_offset = token_end
    log.debug("Reconstructed %d sentences over %d tokens", len(out), token_offset)
    return out
