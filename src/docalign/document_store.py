"""JSON document store: codec plus file / directory / archive containers.

Documents are stored as one JSON object each (orjson). Three container
shapes are supported, mapped one to one from input to output:

  file      : ``doc.json`` → ``out.json``
  directory : every ``*.json`` in a directory → same names in another
  archive   : ``in.zip`` entries → same entry names in ``out.zip``

Output files are never left half written: single files go through a
temp-file rename, archives are assembled in memory and written once.
"""
from __future__ import annotations

import functools
import io
import logging
import zipfile
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import orjson

from docalign.document_types import (
    AnnotationMetadata,
    Constituent,
    Dependency,
    DependencyParse,
    Document,
    Entity,
    EntityMention,
    EntityMentionSet,
    EntitySet,
    Parse,
    Section,
    SectionSegmentation,
    Sentence,
    SentenceSegmentation,
    TaggedToken,
    TextSpan,
    Token,
    Tokenization,
    TokenRefSequence,
    TokenTagging,
)
from docalign.io_utils import dumps_json, write_bytes_atomic

log = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".json"
ARCHIVE_SUFFIX = ".zip"


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def _span_to_dict(span: TextSpan | None) -> dict[str, int] | None:
    if span is None:
        return None
    return {"start": span.start, "ending": span.ending}


def _span_from_dict(data: dict[str, Any] | None) -> TextSpan | None:
    if data is None:
        return None
    return TextSpan(int(data["start"]), int(data["ending"]))


def _meta_to_dict(meta: AnnotationMetadata) -> dict[str, Any]:
    return {"tool": meta.tool, "timestamp": meta.timestamp}


def _meta_from_dict(data: dict[str, Any]) -> AnnotationMetadata:
    return AnnotationMetadata(tool=str(data["tool"]), timestamp=int(data["timestamp"]))


def _tokenization_to_dict(tok: Tokenization) -> dict[str, Any]:
    return {
        "uuid": tok.uuid,
        "metadata": _meta_to_dict(tok.metadata),
        "tokens": [
            {
                "token_index": t.token_index,
                "text": t.text,
                "text_span": _span_to_dict(t.text_span),
            }
            for t in tok.tokens
        ],
        "token_taggings": [
            {
                "uuid": tt.uuid,
                "metadata": _meta_to_dict(tt.metadata),
                "tagging_type": tt.tagging_type,
                "tagged_tokens": [[t.token_index, t.tag] for t in tt.tagged_tokens],
            }
            for tt in tok.token_taggings
        ],
        "parses": [
            {
                "uuid": p.uuid,
                "metadata": _meta_to_dict(p.metadata),
                "constituents": [
                    {
                        "id": c.id,
                        "tag": c.tag,
                        "child_ids": list(c.child_ids),
                        "start": c.start,
                        "ending": c.ending,
                        "head_child_index": c.head_child_index,
                    }
                    for c in p.constituents
                ],
            }
            for p in tok.parses
        ],
        "dependency_parses": [
            {
                "uuid": dp.uuid,
                "metadata": _meta_to_dict(dp.metadata),
                "dependencies": [
                    {"gov": d.gov, "dep": d.dep, "edge_type": d.edge_type}
                    for d in dp.dependencies
                ],
            }
            for dp in tok.dependency_parses
        ],
    }


def _tokenization_from_dict(data: dict[str, Any]) -> Tokenization:
    return Tokenization(
        uuid=str(data["uuid"]),
        metadata=_meta_from_dict(data["metadata"]),
        tokens=[
            Token(
                token_index=int(t["token_index"]),
                text=str(t["text"]),
                text_span=_span_from_dict(t.get("text_span")),
            )
            for t in data.get("tokens", [])
        ],
        token_taggings=[
            TokenTagging(
                uuid=str(tt["uuid"]),
                metadata=_meta_from_dict(tt["metadata"]),
                tagging_type=str(tt["tagging_type"]),
                tagged_tokens=[TaggedToken(int(i), str(tag)) for i, tag in tt["tagged_tokens"]],
            )
            for tt in data.get("token_taggings", [])
        ],
        parses=[
            Parse(
                uuid=str(p["uuid"]),
                metadata=_meta_from_dict(p["metadata"]),
                constituents=[
                    Constituent(
                        id=int(c["id"]),
                        tag=str(c["tag"]),
                        child_ids=tuple(int(x) for x in c["child_ids"]),
                        start=int(c["start"]),
                        ending=int(c["ending"]),
                        head_child_index=int(c.get("head_child_index", -1)),
                    )
                    for c in p["constituents"]
                ],
            )
            for p in data.get("parses", [])
        ],
        dependency_parses=[
            DependencyParse(
                uuid=str(dp["uuid"]),
                metadata=_meta_from_dict(dp["metadata"]),
                dependencies=[
                    Dependency(
                        gov=None if d["gov"] is None else int(d["gov"]),
                        dep=int(d["dep"]),
                        edge_type=str(d["edge_type"]),
                    )
                    for d in dp["dependencies"]
                ],
            )
            for dp in data.get("dependency_parses", [])
        ],
    )


def _sentence_seg_to_dict(ss: SentenceSegmentation) -> dict[str, Any]:
    return {
        "uuid": ss.uuid,
        "metadata": _meta_to_dict(ss.metadata),
        "sentences": [
            {
                "uuid": s.uuid,
                "text_span": _span_to_dict(s.text_span),
                "tokenization": (
                    None if s.tokenization is None
                    else _tokenization_to_dict(s.tokenization)
                ),
            }
            for s in ss.sentences
        ],
    }


def _sentence_seg_from_dict(data: dict[str, Any]) -> SentenceSegmentation:
    return SentenceSegmentation(
        uuid=str(data["uuid"]),
        metadata=_meta_from_dict(data["metadata"]),
        sentences=[
            Sentence(
                uuid=str(s["uuid"]),
                text_span=_span_from_dict(s.get("text_span")),
                tokenization=(
                    None if s.get("tokenization") is None
                    else _tokenization_from_dict(s["tokenization"])
                ),
            )
            for s in data.get("sentences", [])
        ],
    )


def document_to_dict(doc: Document) -> dict[str, Any]:
    return {
        "id": doc.id,
        "text": doc.text,
        "section_segmentations": [
            {
                "uuid": seg.uuid,
                "sections": [
                    {
                        "uuid": sec.uuid,
                        "label": sec.label,
                        "text_span": _span_to_dict(sec.text_span),
                        "sentence_segmentations": [
                            _sentence_seg_to_dict(ss) for ss in sec.sentence_segmentations
                        ],
                    }
                    for sec in seg.sections
                ],
            }
            for seg in doc.section_segmentations
        ],
        "entity_mention_sets": [
            {
                "uuid": ems.uuid,
                "metadata": _meta_to_dict(ems.metadata),
                "mentions": [
                    {
                        "uuid": m.uuid,
                        "text": m.text,
                        "entity_type": m.entity_type,
                        "tokens": {
                            "tokenization_id": m.tokens.tokenization_id,
                            "token_indices": list(m.tokens.token_indices),
                            "anchor_token_index": m.tokens.anchor_token_index,
                        },
                    }
                    for m in ems.mentions
                ],
            }
            for ems in doc.entity_mention_sets
        ],
        "entity_sets": [
            {
                "uuid": es.uuid,
                "metadata": _meta_to_dict(es.metadata),
                "entities": [
                    {
                        "uuid": e.uuid,
                        "mention_ids": list(e.mention_ids),
                        "canonical_name": e.canonical_name,
                        "entity_type": e.entity_type,
                    }
                    for e in es.entities
                ],
            }
            for es in doc.entity_sets
        ],
    }


def document_from_dict(data: dict[str, Any]) -> Document:
    return Document(
        id=str(data["id"]),
        text=str(data["text"]),
        section_segmentations=[
            SectionSegmentation(
                uuid=str(seg["uuid"]),
                sections=[
                    Section(
                        uuid=str(sec["uuid"]),
                        label=sec.get("label"),
                        text_span=_span_from_dict(sec.get("text_span")),
                        sentence_segmentations=[
                            _sentence_seg_from_dict(ss)
                            for ss in sec.get("sentence_segmentations", [])
                        ],
                    )
                    for sec in seg.get("sections", [])
                ],
            )
            for seg in data.get("section_segmentations", [])
        ],
        entity_mention_sets=[
            EntityMentionSet(
                uuid=str(ems["uuid"]),
                metadata=_meta_from_dict(ems["metadata"]),
                mentions=[
                    EntityMention(
                        uuid=str(m["uuid"]),
                        text=str(m["text"]),
                        entity_type=str(m.get("entity_type", "Unknown")),
                        tokens=TokenRefSequence(
                            tokenization_id=str(m["tokens"]["tokenization_id"]),
                            token_indices=tuple(int(i) for i in m["tokens"]["token_indices"]),
                            anchor_token_index=int(m["tokens"].get("anchor_token_index", -1)),
                        ),
                    )
                    for m in ems["mentions"]
                ],
            )
            for ems in data.get("entity_mention_sets", [])
        ],
        entity_sets=[
            EntitySet(
                uuid=str(es["uuid"]),
                metadata=_meta_from_dict(es["metadata"]),
                entities=[
                    Entity(
                        uuid=str(e["uuid"]),
                        mention_ids=[str(x) for x in e["mention_ids"]],
                        canonical_name=str(e.get("canonical_name", "")),
                        entity_type=str(e.get("entity_type", "Unknown")),
                    )
                    for e in es["entities"]
                ],
            )
            for es in data.get("entity_sets", [])
        ],
    )


def decode_document(raw: bytes) -> Document:
    data = orjson.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("document payload is not a JSON object")
    return document_from_dict(data)


def encode_document(doc: Document) -> bytes:
    return dumps_json(document_to_dict(doc))


def load_document(path: Path) -> Document:
    return decode_document(path.read_bytes())


def save_document(doc: Document, path: Path) -> None:
    write_bytes_atomic(path, encode_document(doc))


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


class StoreMode(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    ARCHIVE = "archive"


def detect_mode(input_path: Path, output_path: Path) -> StoreMode:
    """Pick the container shape from the input/output path pair."""
    if input_path.suffix == ARCHIVE_SUFFIX and output_path.suffix == ARCHIVE_SUFFIX:
        return StoreMode.ARCHIVE
    if input_path.is_file() and input_path.suffix != ARCHIVE_SUFFIX:
        return StoreMode.FILE
    if input_path.is_dir():
        return StoreMode.DIRECTORY
    if not input_path.exists():
        raise FileNotFoundError(f"Input path {input_path} doesn't exist.")
    raise ValueError(
        f"Cannot pair input {input_path} with output {output_path}: "
        "expected file→file, directory→directory or .zip→.zip"
    )


@dataclass(frozen=True, slots=True)
class StoredEntry:
    """One document slot in a container; bytes are read on demand.

    ``load`` is only valid while the container is open, so archive entries
    must be read before iteration over the archive finishes.
    """

    name: str
    load: Callable[[], bytes]


def iter_directory(input_dir: Path) -> Iterator[StoredEntry]:
    for path in sorted(input_dir.iterdir()):
        if path.is_file() and path.suffix == DOCUMENT_SUFFIX:
            yield StoredEntry(name=path.name, load=path.read_bytes)


def iter_archive(archive_path: Path) -> Iterator[StoredEntry]:
    with zipfile.ZipFile(archive_path) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            yield StoredEntry(name=info.filename, load=functools.partial(zf.read, info))


class ArchiveWriter:
    """Collects encoded entries and writes the archive in one step on close."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._buffer = io.BytesIO()
        self._zf = zipfile.ZipFile(self._buffer, "w", compression=zipfile.ZIP_DEFLATED)
        self.count = 0

    def add(self, name: str, raw: bytes) -> None:
        self._zf.writestr(name, raw)
        self.count += 1

    def close(self) -> None:
        self._zf.close()
        write_bytes_atomic(self.path, self._buffer.getvalue())
        log.info("Wrote %d entries to %s", self.count, self.path)

    def __enter__(self) -> ArchiveWriter:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        if exc_type is None:
            self.close()
        else:
            # Drop the buffer; an aborted run must not leave an archive behind.
            self._zf.close()
