"""Tests for docalign.document_store: codec and container shapes."""
from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from docalign.document_store import (
    ArchiveWriter,
    StoreMode,
    decode_document,
    detect_mode,
    document_to_dict,
    encode_document,
    iter_archive,
    iter_directory,
    load_document,
    save_document,
)
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

META = AnnotationMetadata(tool="test", timestamp=1_700_000_000)


def _full_document() -> Document:
    tok = Tokenization(
        uuid="tok",
        metadata=META,
        tokens=[Token(0, "Hi", TextSpan(0, 2)), Token(1, "(", TextSpan(3, 4))],
        token_taggings=[TokenTagging("tt", META, "POS", [TaggedToken(0, "UH"), TaggedToken(1, "-LRB-")])],
        parses=[Parse("p", META, [Constituent(0, "S", (), 0, 2)])],
        dependency_parses=[DependencyParse("dp", META, [Dependency(None, 0, "root")])],
    )
    return Document(
        id="doc",
        text="Hi (",
        section_segmentations=[SectionSegmentation(
            uuid="seg",
            sections=[Section(
                uuid="sec",
                label="</TEXT>",
                text_span=TextSpan(0, 4),
                sentence_segmentations=[SentenceSegmentation(
                    uuid="ss", metadata=META,
                    sentences=[Sentence(uuid="s", tokenization=tok, text_span=TextSpan(0, 4))],
                )],
            )],
        )],
        entity_mention_sets=[EntityMentionSet("ems", META, [
            EntityMention("m", TokenRefSequence("tok", (0,), 0), "Hi"),
        ])],
        entity_sets=[EntitySet("es", META, [Entity("e", ["m"], "Hi")])],
    )


class TestCodec:
    def test_encode_decode_preserves_tree(self) -> None:
        doc = _full_document()
        again = decode_document(encode_document(doc))
        assert document_to_dict(again) == document_to_dict(doc)
        tok = again.section_segmentations[0].sections[0].sentences[0].tokenization
        assert tok is not None
        assert tok.dependency_parses[0].dependencies[0].gov is None

    def test_minimal_document(self) -> None:
        doc = decode_document(b'{"id": "d", "text": "x"}')
        assert doc.section_segmentations == []

    def test_rejects_non_object(self) -> None:
        with pytest.raises(ValueError):
            decode_document(b"[]")

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "doc.json"
        save_document(_full_document(), path)
        assert load_document(path).id == "doc"
        assert [p.name for p in path.parent.iterdir()] == ["doc.json"]


class TestDetectMode:
    def test_file(self, tmp_path: Path) -> None:
        src = tmp_path / "a.json"
        src.write_bytes(b"{}")
        assert detect_mode(src, tmp_path / "b.json") is StoreMode.FILE

    def test_directory(self, tmp_path: Path) -> None:
        assert detect_mode(tmp_path, tmp_path / "out") is StoreMode.DIRECTORY

    def test_archive(self, tmp_path: Path) -> None:
        assert detect_mode(tmp_path / "a.zip", tmp_path / "b.zip") is StoreMode.ARCHIVE

    def test_missing_input(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            detect_mode(tmp_path / "nope", tmp_path / "out")

    def test_zip_to_directory_rejected(self, tmp_path: Path) -> None:
        src = tmp_path / "a.zip"
        src.write_bytes(b"")
        with pytest.raises(ValueError):
            detect_mode(src, tmp_path / "out")


class TestContainers:
    def test_iter_directory_only_json(self, tmp_path: Path) -> None:
        (tmp_path / "b.json").write_bytes(b"{}")
        (tmp_path / "a.json").write_bytes(b"{}")
        (tmp_path / "notes.txt").write_text("skip")
        assert [e.name for e in iter_directory(tmp_path)] == ["a.json", "b.json"]

    def test_archive_writer_and_reader(self, tmp_path: Path) -> None:
        path = tmp_path / "out.zip"
        with ArchiveWriter(path) as writer:
            writer.add("one.json", b"{}")
            writer.add("two.json", b"[]")
        entries = [(e.name, e.load()) for e in iter_archive(path)]
        assert entries == [("one.json", b"{}"), ("two.json", b"[]")]

    def test_archive_writer_discards_on_error(self, tmp_path: Path) -> None:
        path = tmp_path / "out.zip"
        with pytest.raises(RuntimeError), ArchiveWriter(path) as writer:
            writer.add("one.json", b"{}")
            raise RuntimeError("boom")
        assert not path.exists()

    def test_iter_archive_skips_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "in.zip"
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("sub/", b"")
            zf.writestr("sub/doc.json", b"{}")
        assert [e.name for e in iter_archive(path)] == ["sub/doc.json"]
