"""Error taxonomy for the alignment engine.

Every error here is fatal to the document being processed. None of them
is retried: each one means the document tree and the external annotation
stream have drifted apart, and feeding the same inputs again would drift
the same way.
"""
from __future__ import annotations


class AlignmentError(RuntimeError):
    """Base class for all alignment-engine failures."""


class CountMismatchError(AlignmentError):
    """A produced/consumed count disagreed at some level of the walk."""

    def __init__(self, context: str, *, expected: int, actual: int) -> None:
        self.context = context
        self.expected = expected
        self.actual = actual
        super().__init__(f"{context}: expected {expected}, got {actual}")


class SegmentationNotFoundError(AlignmentError):
    """No Section-Segmentation carries the requested identifier."""

    def __init__(self, segmentation_id: str) -> None:
        self.segmentation_id = segmentation_id
        super().__init__(f"couldn't find section segmentation {segmentation_id}")


class SectionCountMismatchError(CountMismatchError):
    """The sections visited differ from the sections requested."""


class StreamLengthMismatchError(CountMismatchError):
    """The flat annotation stream does not match the demanded sentence total."""


class AnnotationCountMismatchError(CountMismatchError):
    """The engine returned a different number of sentences or tokens."""


class EmptySentenceError(AlignmentError):
    """A sentence with no tokens was handed to the boundary reconstructor."""

    def __init__(self, sentence_index: int) -> None:
        self.sentence_index = sentence_index
        super().__init__(f"unexpected empty sentence at position {sentence_index}")


class UnsupportedLanguageError(AlignmentError):
    """The language code has no sentence-text strategy."""

    def __init__(self, language: str) -> None:
        self.language = language
        super().__init__(f"unsupported language: {language!r}")


class IndexOutOfRangeError(AlignmentError):
    """A positional reference points past the end of its target list."""

    def __init__(self, what: str, *, index: int, size: int) -> None:
        self.what = what
        self.index = index
        self.size = size
        super().__init__(f"{what} index {index} out of range for size {size}")


class EmptyTargetSetError(AlignmentError):
    """Alignment was requested with no target sections."""


class DuplicateIdentifierError(AlignmentError):
    """An identifier occurs more than once where it must be unique."""

    def __init__(self, identifier: str, where: str) -> None:
        self.identifier = identifier
        super().__init__(f"{identifier} appears more than once in {where}")


class UnknownLayerError(AlignmentError):
    """An annotation layer name outside the supported set was requested."""


class ParseLayerError(AlignmentError):
    """The engine returned a constituency tree that cannot be read."""


class NegativeSentenceCountError(AlignmentError):
    """A requested section was assigned fewer than zero sentences."""

    def __init__(self, section_id: str, count: int) -> None:
        self.section_id = section_id
        self.count = count
        super().__init__(f"negative sentence count {count} for section {section_id}")
