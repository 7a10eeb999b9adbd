"""Tests for docalign.coreference: chain projection onto Tokenizations."""
from __future__ import annotations

import pytest

from docalign.annotation_types import CoreferenceChain, MentionDescriptor
from docalign.coreference import attach_coreference, project
from docalign.document_types import (
    AnnotationMetadata,
    Document,
    TextSpan,
    Token,
    Tokenization,
)
from docalign.errors import IndexOutOfRangeError

META = AnnotationMetadata(tool="test", timestamp=1_700_000_000)


def _tokenizations() -> list[Tokenization]:
    sentences = [
        ["Mary", "met", "the", "mayor"],
        ["It", "rained"],
        ["She", "left"],
    ]
    out: list[Tokenization] = []
    offset = 0
    for i, words in enumerate(sentences):
        tokens: list[Token] = []
        for j, word in enumerate(words):
            tokens.append(Token(j, word, TextSpan(offset, offset + len(word))))
            offset += len(word) + 1
        out.append(Tokenization(uuid=f"tok-{i}", metadata=META, tokens=tokens))
    return out


class TestProject:
    def test_one_chain_two_mentions(self) -> None:
        chain = CoreferenceChain(mentions=(
            MentionDescriptor(sentence_index=0, start=0, end=1),
            MentionDescriptor(sentence_index=2, start=0, end=1),
        ))
        mention_set, entity_set = project([chain], _tokenizations(), META)
        assert len(entity_set.entities) == 1
        assert len(mention_set.mentions) == 2
        entity = entity_set.entities[0]
        assert entity.mention_ids == [m.uuid for m in mention_set.mentions]

    def test_mentions_reference_tokenizations_by_id(self) -> None:
        chain = CoreferenceChain(mentions=(
            MentionDescriptor(0, 2, 4, head=3),
            MentionDescriptor(2, 0, 1),
        ))
        mention_set, _ = project([chain], _tokenizations(), META)
        first, second = mention_set.mentions
        assert first.tokens.tokenization_id == "tok-0"
        assert first.tokens.token_indices == (2, 3)
        assert first.tokens.anchor_token_index == 3
        assert first.text == "the mayor"
        assert second.tokens.tokenization_id == "tok-2"
        assert second.tokens.anchor_token_index == -1

    def test_canonical_name_prefers_representative(self) -> None:
        chain = CoreferenceChain(mentions=(
            MentionDescriptor(2, 0, 1),
            MentionDescriptor(0, 0, 1, representative=True),
        ))
        _, entity_set = project([chain], _tokenizations(), META)
        assert entity_set.entities[0].canonical_name == "Mary"

    def test_canonical_name_falls_back_to_first(self) -> None:
        chain = CoreferenceChain(mentions=(MentionDescriptor(2, 0, 1), MentionDescriptor(0, 0, 1)))
        _, entity_set = project([chain], _tokenizations(), META)
        assert entity_set.entities[0].canonical_name == "She"

    def test_sets_share_metadata(self) -> None:
        mention_set, entity_set = project([], _tokenizations(), META)
        assert mention_set.metadata == META
        assert entity_set.metadata == META
        assert mention_set.mentions == []
        assert entity_set.entities == []

    def test_sentence_index_past_end_raises(self) -> None:
        chain = CoreferenceChain(mentions=(MentionDescriptor(3, 0, 1),))
        with pytest.raises(IndexOutOfRangeError) as exc_info:
            project([chain], _tokenizations(), META)
        assert exc_info.value.index == 3
        assert exc_info.value.size == 3

    def test_negative_sentence_index_raises(self) -> None:
        chain = CoreferenceChain(mentions=(MentionDescriptor(-1, 0, 1),))
        with pytest.raises(IndexOutOfRangeError):
            project([chain], _tokenizations(), META)

    def test_token_span_past_end_raises(self) -> None:
        chain = CoreferenceChain(mentions=(MentionDescriptor(1, 1, 3),))
        with pytest.raises(IndexOutOfRangeError):
            project([chain], _tokenizations(), META)


class TestAttachCoreference:
    def test_two_calls_give_two_independent_sets(self) -> None:
        doc = Document(id="d", text="")
        toks = _tokenizations()
        chain = CoreferenceChain(mentions=(MentionDescriptor(0, 0, 1),))
        for _ in range(2):
            attach_coreference(doc, *project([chain], toks, META))
        assert len(doc.entity_mention_sets) == 2
        assert len(doc.entity_sets) == 2
        assert doc.entity_sets[0].uuid != doc.entity_sets[1].uuid
