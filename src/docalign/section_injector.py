"""Annotate already-tokenized sections through the external engine.

For each eligible Section the existing Sentences' tokens are bridged to
engine tokens, the sentence partition is rebuilt (the engine never
re-splits), and the engine is called once for the whole section. The
records that come back are matched to the existing Tokenizations by
position and their POS / constituency / dependency layers are attached.

All layers for a section (or a whole document) are converted first and
attached only once every sentence has converted, so a failure leaves the
document untouched.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from docalign.annotation_types import (
    AnnotationEngine,
    ExternalToken,
    FlatAnnotationRecord,
    SectionRequest,
)
from docalign.config import AlignerConfig
from docalign.document_types import (
    AnnotationMetadata,
    Document,
    Section,
    Sentence,
    Tokenization,
)
from docalign.errors import AnnotationCountMismatchError
from docalign.exclusive import exclusive
from docalign.layers import ConvertedLayers, attach_layers, convert_layers
from docalign.sentence_boundaries import reconstruct_sentences
from docalign.token_bridge import sentence_to_external

log = logging.getLogger(__name__)

PendingLayers = list[tuple[Tokenization, ConvertedLayers]]


def _require_tokenization(sentence: Sentence) -> Tokenization:
    if sentence.tokenization is None:
        raise ValueError(f"sentence {sentence.uuid} has no tokenization to annotate")
    return sentence.tokenization


def build_request(
    sentences: Sequence[Sentence], document: Document, config: AlignerConfig,
) -> SectionRequest:
    """Bridge ``sentences`` into a single engine request."""
    per_sentence: list[list[ExternalToken]] = []
    for sentence in sentences:
        tokenization = _require_tokenization(sentence)
        external = sentence_to_external(
            tokenization.tokens, normalize_brackets=config.normalize_brackets,
        )
        if log.isEnabledFor(logging.DEBUG):
            log.debug("Converted sentence: %s", " ".join(t.word for t in external))
        per_sentence.append(external)
    annotations = reconstruct_sentences(
        per_sentence, document.text, config.sentence_text_mode,
    )
    return SectionRequest(
        document_text=document.text,
        tokens=tuple(t for sent in per_sentence for t in sent),
        sentences=tuple(annotations),
        language=config.language,
    )


def _convert_records(
    sentences: Sequence[Sentence],
    records: Sequence[FlatAnnotationRecord],
    metadata: AnnotationMetadata,
    config: AlignerConfig,
    context: str,
) -> PendingLayers:
    if len(records) != len(sentences):
        raise AnnotationCountMismatchError(
            f"sentences returned for {context}",
            expected=len(sentences),
            actual=len(records),
        )
    pending: PendingLayers = []
    for sentence, record in zip(sentences, records, strict=True):
        tokenization = _require_tokenization(sentence)
        num_tokens = len(tokenization.tokens)
        if len(record.tokens) != num_tokens:
            raise AnnotationCountMismatchError(
                f"tokens returned for sentence {sentence.uuid}",
                expected=num_tokens,
                actual=len(record.tokens),
            )
        converted = convert_layers(record, num_tokens, metadata, config.layers)
        pending.append((tokenization, converted))
    return pending


def _annotate_sentences(
    sentences: Sequence[Sentence],
    document: Document,
    engine: AnnotationEngine,
    config: AlignerConfig,
    metadata: AnnotationMetadata,
    context: str,
) -> PendingLayers:
    request = build_request(sentences, document, config)
    records = engine.annotate_section(request)
    return _convert_records(sentences, records, metadata, config, context)


def _commit(pending: PendingLayers) -> None:
    for tokenization, converted in pending:
        attach_layers(tokenization, converted)


def inject_into(
    section: Section,
    document: Document,
    engine: AnnotationEngine,
    config: AlignerConfig,
    *,
    metadata: AnnotationMetadata | None = None,
) -> None:
    """Annotate one section's sentences in place with a single engine call."""
    meta = metadata or AnnotationMetadata.now(config.tool_name)
    with exclusive(document):
        sentences = section.sentences
        if not sentences:
            log.debug("Section %s has no sentences; nothing to annotate", section.uuid)
            return
        pending = _annotate_sentences(
            sentences, document, engine, config, meta, f"section {section.uuid}",
        )
        _commit(pending)


def inject_into_sentence(
    sentence: Sentence,
    document: Document,
    engine: AnnotationEngine,
    config: AlignerConfig,
    *,
    metadata: AnnotationMetadata | None = None,
) -> None:
    """Annotate a single sentence; the engine must return exactly one record."""
    meta = metadata or AnnotationMetadata.now(config.tool_name)
    with exclusive(document):
        pending = _annotate_sentences(
            [sentence], document, engine, config, meta, f"sentence {sentence.uuid}",
        )
        _commit(pending)


def annotate_document(
    document: Document,
    engine: AnnotationEngine,
    config: AlignerConfig,
    *,
    metadata: AnnotationMetadata | None = None,
) -> int:
    """Annotate every eligible section of ``document``.

    Sections whose label is set and not in ``config.body_section_labels``
    are skipped. Returns the number of sections annotated.
    """
    meta = metadata or AnnotationMetadata.now(config.tool_name)
    with exclusive(document):
        pending: PendingLayers = []
        annotated = 0
        for segmentation in document.section_segmentations:
            for section in segmentation.sections:
                if not config.is_eligible_label(section.label):
                    log.debug(
                        "Skipping section %s with label %r", section.uuid, section.label,
                    )
                    continue
                sentences = section.sentences
                if not sentences:
                    continue
                pending.extend(_annotate_sentences(
                    sentences, document, engine, config, meta,
                    f"section {section.uuid}",
                ))
                annotated += 1
        _commit(pending)
    log.info("Annotated %d sections of document %s", annotated, document.id)
    return annotated
