"""Lockstep walk of the document tree and the flat annotation stream.

The walker pairs two structures that describe the same text:

  tree  : SectionSegmentation → Section → (new) SentenceSegmentation
           → Sentence → Tokenization, addressed by identifier
  stream: one FlatAnnotationRecord per source sentence, addressed only
           by position

Two cursors thread through the walk, carried in an immutable WalkCursor
that each step returns rather than mutates:

  section_ptr: position in the caller's ordered section-id list
  stream_ptr : position in the flat stream

Both only move forward. The caller's section order is authoritative;
each target Section is located by identifier, not by native position.

Nothing is spliced into the Document until every count has been checked.
The Tokenization list returned in AlignedDocument shares the stream's
index space, which is what the coreference projector relies on.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from docalign.annotation_types import AnnotatedDocument, FlatAnnotationRecord
from docalign.config import AlignerConfig
from docalign.coreference import attach_coreference, project
from docalign.document_types import (
    AnnotationMetadata,
    Document,
    EntityMentionSet,
    EntitySet,
    Section,
    SectionSegmentation,
    Sentence,
    SentenceSegmentation,
    TextSpan,
    Tokenization,
    new_id,
)
from docalign.errors import (
    DuplicateIdentifierError,
    EmptyTargetSetError,
    IndexOutOfRangeError,
    NegativeSentenceCountError,
    SectionCountMismatchError,
    SegmentationNotFoundError,
    StreamLengthMismatchError,
)
from docalign.exclusive import exclusive
from docalign.layers import tokenization_from_record

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WalkCursor:
    section_ptr: int = 0
    stream_ptr: int = 0


@dataclass(slots=True)
class AlignmentPlan:
    """Nodes built by a walk, not yet spliced into the document."""

    splices: list[tuple[Section, SentenceSegmentation]] = field(
        default_factory=list[tuple[Section, SentenceSegmentation]]
    )
    tokenizations: list[Tokenization] = field(default_factory=list[Tokenization])
    cursor: WalkCursor = field(default_factory=WalkCursor)


@dataclass(slots=True)
class AlignedDocument:
    document: Document
    sentence_segmentations: list[SentenceSegmentation]
    tokenizations: list[Tokenization]
    metadata: AnnotationMetadata
    entity_mention_set: EntityMentionSet | None = None
    entity_set: EntitySet | None = None


def find_section_segmentation(
    document: Document, segmentation_id: str,
) -> SectionSegmentation:
    matches = [
        ss for ss in document.section_segmentations if ss.uuid == segmentation_id
    ]
    if not matches:
        raise SegmentationNotFoundError(segmentation_id)
    if len(matches) > 1:
        raise DuplicateIdentifierError(segmentation_id, f"document {document.id}")
    return matches[0]


def index_sections(segmentation: SectionSegmentation) -> dict[str, Section]:
    """Map section id → Section, refusing duplicate identifiers."""
    index: dict[str, Section] = {}
    for section in segmentation.sections:
        if section.uuid in index:
            raise DuplicateIdentifierError(
                section.uuid, f"section segmentation {segmentation.uuid}",
            )
        index[section.uuid] = section
    return index


def eligible_section_ids(
    segmentation: SectionSegmentation, config: AlignerConfig,
) -> list[str]:
    """Ids of the sections ``config`` allows to receive annotation, in order."""
    return [s.uuid for s in segmentation.sections if config.is_eligible_label(s.label)]


def _validate_request(
    ordered_section_ids: Sequence[str], sentence_counts: Sequence[int],
) -> None:
    if len(sentence_counts) != len(ordered_section_ids):
        raise SectionCountMismatchError(
            "sentence counts for requested sections",
            expected=len(ordered_section_ids),
            actual=len(sentence_counts),
        )
    seen: set[str] = set()
    for section_id in ordered_section_ids:
        if section_id in seen:
            raise DuplicateIdentifierError(section_id, "requested section list")
        seen.add(section_id)
    for section_id, count in zip(ordered_section_ids, sentence_counts, strict=True):
        if count < 0:
            raise NegativeSentenceCountError(section_id, count)


def _sentence_span(tokenization: Tokenization) -> TextSpan | None:
    spans = [t.text_span for t in tokenization.tokens if t.text_span is not None]
    if not spans:
        return None
    return TextSpan(spans[0].start, spans[-1].ending)


def build_sentence_segmentation(
    count: int,
    stream: Sequence[FlatAnnotationRecord],
    cursor: WalkCursor,
    metadata: AnnotationMetadata,
    config: AlignerConfig,
) -> tuple[SentenceSegmentation, list[Tokenization], WalkCursor]:
    """Consume ``count`` records starting at ``cursor.stream_ptr``.

    Returns the new segmentation, its Tokenizations in stream order, and
    the cursor advanced past the consumed records and this section.
    """
    segmentation = SentenceSegmentation(uuid=new_id(), metadata=metadata)
    tokenizations: list[Tokenization] = []
    stream_ptr = cursor.stream_ptr
    for _ in range(count):
        if stream_ptr >= len(stream):
            raise IndexOutOfRangeError(
                "annotation stream", index=stream_ptr, size=len(stream),
            )
        tokenization = tokenization_from_record(
            stream[stream_ptr],
            metadata,
            layers=config.layers,
            restore_brackets=config.restore_brackets,
        )
        stream_ptr += 1
        tokenizations.append(tokenization)
        segmentation.sentences.append(Sentence(
            uuid=new_id(),
            tokenization=tokenization,
            text_span=_sentence_span(tokenization),
        ))
    next_cursor = WalkCursor(
        section_ptr=cursor.section_ptr + 1, stream_ptr=stream_ptr,
    )
    return segmentation, tokenizations, next_cursor


def plan_alignment(
    segmentation: SectionSegmentation,
    ordered_section_ids: Sequence[str],
    sentence_counts: Sequence[int],
    stream: Sequence[FlatAnnotationRecord],
    metadata: AnnotationMetadata,
    config: AlignerConfig,
) -> AlignmentPlan:
    """Walk the requested sections and build, but do not attach, new nodes."""
    _validate_request(ordered_section_ids, sentence_counts)
    demanded = sum(sentence_counts)
    if demanded != len(stream):
        raise StreamLengthMismatchError(
            f"annotation records for section segmentation {segmentation.uuid}",
            expected=demanded,
            actual=len(stream),
        )

    sections = index_sections(segmentation)
    plan = AlignmentPlan()
    cursor = plan.cursor
    for section_id in ordered_section_ids:
        section = sections.get(section_id)
        if section is None:
            log.error(
                "Section %s not found in section segmentation %s",
                section_id, segmentation.uuid,
            )
            break
        count = sentence_counts[cursor.section_ptr]
        log.debug(
            "section_ptr=%d stream_ptr=%d section=%s sentences=%d",
            cursor.section_ptr, cursor.stream_ptr, section_id, count,
        )
        sentence_seg, tokenizations, cursor = build_sentence_segmentation(
            count, stream, cursor, metadata, config,
        )
        plan.splices.append((section, sentence_seg))
        plan.tokenizations.extend(tokenizations)
    plan.cursor = cursor

    if cursor.section_ptr != len(ordered_section_ids):
        raise SectionCountMismatchError(
            f"sections found in section segmentation {segmentation.uuid}",
            expected=len(ordered_section_ids),
            actual=cursor.section_ptr,
        )
    if cursor.stream_ptr != len(stream):
        raise StreamLengthMismatchError(
            f"annotation records consumed for section segmentation {segmentation.uuid}",
            expected=len(stream),
            actual=cursor.stream_ptr,
        )
    return plan


def commit_plan(plan: AlignmentPlan) -> list[SentenceSegmentation]:
    for section, sentence_seg in plan.splices:
        section.sentence_segmentations.append(sentence_seg)
    return [sentence_seg for _, sentence_seg in plan.splices]


def _empty_result(
    document: Document, metadata: AnnotationMetadata, config: AlignerConfig,
) -> AlignedDocument:
    if not config.allow_empty_targets:
        raise EmptyTargetSetError(
            f"no target sections given for document {document.id}"
        )
    log.warning("Alignment called with no sections specified for %s", document.id)
    return AlignedDocument(
        document=document, sentence_segmentations=[], tokenizations=[], metadata=metadata,
    )


def align(
    document: Document,
    section_segmentation_id: str,
    ordered_section_ids: Sequence[str],
    sentence_counts: Sequence[int],
    stream: Sequence[FlatAnnotationRecord],
    config: AlignerConfig | None = None,
    *,
    metadata: AnnotationMetadata | None = None,
) -> AlignedDocument:
    """Attach one new SentenceSegmentation per requested section.

    ``sentence_counts[k]`` is the number of sentences of
    ``ordered_section_ids[k]``; their sum must equal ``len(stream)``.
    On any failure the document is left exactly as it was.
    """
    cfg = config or AlignerConfig()
    meta = metadata or AnnotationMetadata.now(cfg.tool_name)
    if not ordered_section_ids:
        return _empty_result(document, meta, cfg)
    with exclusive(document):
        segmentation = find_section_segmentation(document, section_segmentation_id)
        plan = plan_alignment(
            segmentation, ordered_section_ids, sentence_counts, stream, meta, cfg,
        )
        created = commit_plan(plan)
    log.info(
        "Aligned %d sentences across %d sections of document %s",
        len(plan.tokenizations), len(created), document.id,
    )
    return AlignedDocument(
        document=document,
        sentence_segmentations=created,
        tokenizations=plan.tokenizations,
        metadata=meta,
    )


def align_annotated_document(
    document: Document,
    section_segmentation_id: str,
    ordered_section_ids: Sequence[str],
    sentence_counts: Sequence[int],
    annotated: AnnotatedDocument,
    config: AlignerConfig | None = None,
    *,
    metadata: AnnotationMetadata | None = None,
) -> AlignedDocument:
    """Align an engine-produced document, then attach its coreference.

    Coreference is projected before anything is attached, so a bad
    mention index leaves the document untouched too.
    """
    cfg = config or AlignerConfig()
    meta = metadata or AnnotationMetadata.now(cfg.tool_name)
    if not ordered_section_ids:
        return _empty_result(document, meta, cfg)
    with exclusive(document):
        segmentation = find_section_segmentation(document, section_segmentation_id)
        plan = plan_alignment(
            segmentation,
            ordered_section_ids,
            sentence_counts,
            annotated.records,
            meta,
            cfg,
        )
        mention_set, entity_set = project(annotated.coreference, plan.tokenizations, meta)
        created = commit_plan(plan)
        attach_coreference(document, mention_set, entity_set)
    log.info(
        "Aligned %d sentences and %d entities in document %s",
        len(plan.tokenizations), len(entity_set.entities), document.id,
    )
    return AlignedDocument(
        document=document,
        sentence_segmentations=created,
        tokenizations=plan.tokenizations,
        metadata=meta,
        entity_mention_set=mention_set,
        entity_set=entity_set,
    )
