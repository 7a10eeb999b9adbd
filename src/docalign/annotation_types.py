"""Types exchanged with the external NLP annotation engine.

The engine is a collaborator, not part of this package. It sees only
positional, offset-addressed structures:

  ExternalToken       : word + character offsets, no document identifiers
  SentenceAnnotation  : one pre-split sentence (text span + token range)
  SectionRequest      : a section's tokens and sentence partition, sent once
  FlatAnnotationRecord: per-sentence engine output (tokens + layers)
  MentionDescriptor   : one coreference mention, addressed by flat index
  CoreferenceChain    : mentions of one real-world entity
  AnnotatedDocument   : raw-text engine output (records + chains)

Dependency arcs and constituency leaves index tokens within their own
sentence, starting at 0.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class ExternalToken:
    word: str
    begin: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.begin


@dataclass(frozen=True, slots=True)
class SentenceAnnotation:
    """Engine-facing sentence built from an already-known partition.

    ``token_begin``/``token_end`` index into the section-wide token list.
    """

    text: str
    char_begin: int
    char_end: int
    tokens: tuple[ExternalToken, ...]
    token_begin: int
    token_end: int


@dataclass(frozen=True, slots=True)
class SectionRequest:
    """Everything the engine needs to annotate one section in one call."""

    document_text: str
    tokens: tuple[ExternalToken, ...]
    sentences: tuple[SentenceAnnotation, ...]
    language: str


@dataclass(frozen=True, slots=True)
class DependencyArc:
    """Arc between sentence-local token indices; governor -1 marks the root."""

    governor: int
    dependent: int
    relation: str


@dataclass(frozen=True, slots=True)
class FlatAnnotationRecord:
    """Engine output for one source sentence.

    ``constituency`` is a Penn-style bracketed tree, e.g.
    ``(ROOT (S (NP (NNP John)) (VP (VBD ran))))``. Any layer the engine did
    not produce is None.
    """

    tokens: tuple[ExternalToken, ...]
    pos_tags: tuple[str, ...] | None = None
    constituency: str | None = None
    dependencies: tuple[DependencyArc, ...] | None = None


@dataclass(frozen=True, slots=True)
class MentionDescriptor:
    """A mention span: flat sentence index + half-open token range."""

    sentence_index: int
    start: int
    end: int
    head: int = -1
    representative: bool = False


@dataclass(frozen=True, slots=True)
class CoreferenceChain:
    mentions: tuple[MentionDescriptor, ...]


@dataclass(frozen=True, slots=True)
class AnnotatedDocument:
    """Engine output for a whole document, one record per source sentence."""

    records: tuple[FlatAnnotationRecord, ...]
    coreference: tuple[CoreferenceChain, ...] = field(default=())


class AnnotationEngine(Protocol):
    """Blocking interface of the external engine.

    ``annotate_section`` must return one record per sentence of the
    request, in request order, without re-splitting sentences.
    """

    def annotate_section(
        self, request: SectionRequest,
    ) -> list[FlatAnnotationRecord]: ...
