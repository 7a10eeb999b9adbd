"""Read-only aligner configuration shared across workers.

A config is validated when it is built, so an unsupported language fails
before any document is touched rather than halfway through one.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from docalign.errors import UnknownLayerError, UnsupportedLanguageError
from docalign.io_utils import load_json


class SentenceTextMode(Enum):
    """How a reconstructed sentence's literal text is produced."""

    SUBSTRING = "substring"      # slice of the document text
    JOIN_TOKENS = "join_tokens"  # token literals joined by one space


PRIMARY_LANGUAGE = "en"

LANGUAGE_MODES: dict[str, SentenceTextMode] = {
    "en": SentenceTextMode.SUBSTRING,
    "cn": SentenceTextMode.JOIN_TOKENS,
}

SUPPORTED_LAYERS: tuple[str, ...] = ("pos", "cparse", "dparse")

DEFAULT_BODY_SECTION_LABELS: frozenset[str] = frozenset({
    "</TURN>",
    "</HEADLINE>",
    "</TEXT>",
    "</POST>",
    "</post>",
    "</quote>",
})

DEFAULT_TOOL_NAME = "docalign"


def resolve_language(language: str) -> SentenceTextMode:
    """Map a language code to its sentence-text mode."""
    try:
        return LANGUAGE_MODES[language]
    except KeyError:
        raise UnsupportedLanguageError(language) from None


@dataclass(frozen=True, slots=True)
class AlignerConfig:
    language: str = PRIMARY_LANGUAGE
    body_section_labels: frozenset[str] = DEFAULT_BODY_SECTION_LABELS
    tool_name: str = DEFAULT_TOOL_NAME
    layers: tuple[str, ...] = SUPPORTED_LAYERS
    normalize_brackets: bool = True
    restore_brackets: bool = True
    allow_empty_targets: bool = False

    def __post_init__(self) -> None:
        resolve_language(self.language)
        unknown = [name for name in self.layers if name not in SUPPORTED_LAYERS]
        if unknown:
            raise UnknownLayerError(
                f"unknown annotation layers {unknown}; "
                f"supported: {list(SUPPORTED_LAYERS)}"
            )

    @property
    def sentence_text_mode(self) -> SentenceTextMode:
        return resolve_language(self.language)

    def is_eligible_label(self, label: str | None) -> bool:
        """Unlabelled sections and body-text labels receive annotation."""
        return label is None or label in self.body_section_labels

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlignerConfig:
        kwargs: dict[str, Any] = {}
        for key in (
            "language",
            "tool_name",
            "normalize_brackets",
            "restore_brackets",
            "allow_empty_targets",
        ):
            if key in data:
                kwargs[key] = data[key]
        if "body_section_labels" in data:
            kwargs["body_section_labels"] = frozenset(data["body_section_labels"])
        if "layers" in data:
            kwargs["layers"] = tuple(data["layers"])
        return cls(**kwargs)


def load_config(path: Path) -> AlignerConfig:
    """Load an AlignerConfig from a JSON object file."""
    data = load_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config payload in {path}")
    return AlignerConfig.from_dict(data)
