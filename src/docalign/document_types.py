"""Structured document model.

The document tree is addressed by stable string identifiers and nests as:

  Document
    SectionSegmentation  : named partition of the document into Sections
      Section            : optional label, eligible-for-annotation filter
        SentenceSegmentation : created per Section by the aligner
          Sentence
            Tokenization : tokens + POS / constituency / dependency layers

Document-scope siblings EntityMentionSet and EntitySet hold coreference
output. Mentions point back at Tokenizations by identifier only.

All spans are half-open character offsets into ``Document.text``.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import uuid4


def new_id() -> str:
    """Return a fresh identifier for a newly created node."""
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class AnnotationMetadata:
    """Tool name + timestamp pair stamped on every created node set."""

    tool: str
    timestamp: int

    @classmethod
    def now(cls, tool: str) -> AnnotationMetadata:
        return cls(tool=tool, timestamp=int(time.time()))


@dataclass(frozen=True, slots=True)
class TextSpan:
    start: int
    ending: int

    @property
    def length(self) -> int:
        return self.ending - self.start


@dataclass(slots=True)
class Token:
    token_index: int
    text: str
    text_span: TextSpan | None = None


@dataclass(frozen=True, slots=True)
class TaggedToken:
    token_index: int
    tag: str


@dataclass(slots=True)
class TokenTagging:
    uuid: str
    metadata: AnnotationMetadata
    tagging_type: str
    tagged_tokens: list[TaggedToken] = field(default_factory=list[TaggedToken])


@dataclass(frozen=True, slots=True)
class Constituent:
    """One node of a constituency parse.

    ``start``/``ending`` are half-open token indices within the sentence.
    ``head_child_index`` is -1 when the engine supplied no head.
    """

    id: int
    tag: str
    child_ids: tuple[int, ...]
    start: int
    ending: int
    head_child_index: int = -1


@dataclass(slots=True)
class Parse:
    uuid: str
    metadata: AnnotationMetadata
    constituents: list[Constituent] = field(default_factory=list[Constituent])


@dataclass(frozen=True, slots=True)
class Dependency:
    """A typed arc; ``gov`` is None for the root attachment."""

    gov: int | None
    dep: int
    edge_type: str


@dataclass(slots=True)
class DependencyParse:
    uuid: str
    metadata: AnnotationMetadata
    dependencies: list[Dependency] = field(default_factory=list[Dependency])


@dataclass(slots=True)
class Tokenization:
    uuid: str
    metadata: AnnotationMetadata
    tokens: list[Token] = field(default_factory=list[Token])
    token_taggings: list[TokenTagging] = field(default_factory=list[TokenTagging])
    parses: list[Parse] = field(default_factory=list[Parse])
    dependency_parses: list[DependencyParse] = field(
        default_factory=list[DependencyParse]
    )


@dataclass(slots=True)
class Sentence:
    uuid: str
    tokenization: Tokenization | None = None
    text_span: TextSpan | None = None


@dataclass(slots=True)
class SentenceSegmentation:
    uuid: str
    metadata: AnnotationMetadata
    sentences: list[Sentence] = field(default_factory=list[Sentence])


@dataclass(slots=True)
class Section:
    uuid: str
    label: str | None = None
    text_span: TextSpan | None = None
    sentence_segmentations: list[SentenceSegmentation] = field(
        default_factory=list[SentenceSegmentation]
    )

    @property
    def sentences(self) -> list[Sentence]:
        """Sentences of the most recently added segmentation (or none)."""
        if not self.sentence_segmentations:
            return []
        return self.sentence_segmentations[-1].sentences


@dataclass(slots=True)
class SectionSegmentation:
    uuid: str
    sections: list[Section] = field(default_factory=list[Section])


@dataclass(slots=True)
class TokenRefSequence:
    """Weak reference to a token run inside one Tokenization."""

    tokenization_id: str
    token_indices: tuple[int, ...]
    anchor_token_index: int = -1


@dataclass(slots=True)
class EntityMention:
    uuid: str
    tokens: TokenRefSequence
    text: str
    entity_type: str = "Unknown"


@dataclass(slots=True)
class EntityMentionSet:
    uuid: str
    metadata: AnnotationMetadata
    mentions: list[EntityMention] = field(default_factory=list[EntityMention])


@dataclass(slots=True)
class Entity:
    uuid: str
    mention_ids: list[str] = field(default_factory=list[str])
    canonical_name: str = ""
    entity_type: str = "Unknown"


@dataclass(slots=True)
class EntitySet:
    uuid: str
    metadata: AnnotationMetadata
    entities: list[Entity] = field(default_factory=list[Entity])


@dataclass(slots=True, weakref_slot=True, eq=False)
class Document:
    id: str
    text: str
    section_segmentations: list[SectionSegmentation] = field(
        default_factory=list[SectionSegmentation]
    )
    entity_mention_sets: list[EntityMentionSet] = field(
        default_factory=list[EntityMentionSet]
    )
    entity_sets: list[EntitySet] = field(default_factory=list[EntitySet])
