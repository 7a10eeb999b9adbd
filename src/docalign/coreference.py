"""Project flat coreference chains onto aligned Tokenizations.

Chains address mentions by flat sentence index; the Tokenization list
built by the alignment walker shares that index space, so it serves as
the lookup table from sentence index to Tokenization identifier.
"""
from __future__ import annotations

from collections.abc import Sequence

from docalign.annotation_types import CoreferenceChain, MentionDescriptor
from docalign.document_types import (
    AnnotationMetadata,
    Document,
    Entity,
    EntityMention,
    EntityMentionSet,
    EntitySet,
    Tokenization,
    TokenRefSequence,
    new_id,
)
from docalign.errors import IndexOutOfRangeError


def _mention(
    descriptor: MentionDescriptor, tokenizations: Sequence[Tokenization],
) -> EntityMention:
    index = descriptor.sentence_index
    if index < 0 or index >= len(tokenizations):
        raise IndexOutOfRangeError(
            "coreference sentence", index=index, size=len(tokenizations),
        )
    tokenization = tokenizations[index]
    num_tokens = len(tokenization.tokens)
    if descriptor.start < 0 or descriptor.end > num_tokens or descriptor.start >= descriptor.end:
        raise IndexOutOfRangeError(
            f"mention span [{descriptor.start}, {descriptor.end}) token",
            index=descriptor.end - 1,
            size=num_tokens,
        )
    indices = tuple(range(descriptor.start, descriptor.end))
    anchor = descriptor.head if descriptor.head in indices else -1
    text = " ".join(tokenization.tokens[i].text for i in indices)
    return EntityMention(
        uuid=new_id(),
        tokens=TokenRefSequence(
            tokenization_id=tokenization.uuid,
            token_indices=indices,
            anchor_token_index=anchor,
        ),
        text=text,
    )


def project(
    chains: Sequence[CoreferenceChain],
    tokenizations: Sequence[Tokenization],
    metadata: AnnotationMetadata,
) -> tuple[EntityMentionSet, EntitySet]:
    """Build one EntityMentionSet and one EntitySet from ``chains``.

    Each chain becomes an Entity whose canonical name is the text of its
    representative mention, or of its first mention if none is flagged.
    """
    mention_set = EntityMentionSet(uuid=new_id(), metadata=metadata)
    entity_set = EntitySet(uuid=new_id(), metadata=metadata)
    for chain in chains:
        entity = Entity(uuid=new_id())
        names: list[str] = []
        representative = ""
        for descriptor in chain.mentions:
            mention = _mention(descriptor, tokenizations)
            mention_set.mentions.append(mention)
            entity.mention_ids.append(mention.uuid)
            names.append(mention.text)
            if descriptor.representative and not representative:
                representative = mention.text
        entity.canonical_name = representative or (names[0] if names else "")
        entity_set.entities.append(entity)
    return mention_set, entity_set


def attach_coreference(
    document: Document, mention_set: EntityMentionSet, entity_set: EntitySet,
) -> None:
    document.entity_mention_sets.append(mention_set)
    document.entity_sets.append(entity_set)
