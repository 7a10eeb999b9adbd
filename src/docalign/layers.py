"""Conversion of engine annotation layers into Tokenization layers.

Three layer kinds are understood, selected by name:

  pos    : one tag per token            → TokenTagging("POS")
  cparse : Penn bracketed tree string   → Parse of Constituents
  dparse : sentence-local typed arcs    → DependencyParse

Every layer is checked against the sentence's token count before it is
built. Nothing is attached until all requested layers convert cleanly.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from docalign.annotation_types import DependencyArc, FlatAnnotationRecord
from docalign.document_types import (
    AnnotationMetadata,
    Constituent,
    Dependency,
    DependencyParse,
    Parse,
    TaggedToken,
    Tokenization,
    TokenTagging,
    new_id,
)
from docalign.errors import (
    AnnotationCountMismatchError,
    IndexOutOfRangeError,
    ParseLayerError,
)
from docalign.token_bridge import tokens_from_external

_TREE_ITEM_RE = re.compile(r"\(|\)|[^\s()]+")


@dataclass(slots=True)
class ConvertedLayers:
    tagging: TokenTagging | None = None
    parse: Parse | None = None
    dependency_parse: DependencyParse | None = None


def pos_tagging(
    tags: Iterable[str], num_tokens: int, metadata: AnnotationMetadata,
) -> TokenTagging:
    tagged = [TaggedToken(i, tag) for i, tag in enumerate(tags)]
    if len(tagged) != num_tokens:
        raise AnnotationCountMismatchError(
            "part-of-speech tags", expected=num_tokens, actual=len(tagged),
        )
    return TokenTagging(
        uuid=new_id(), metadata=metadata, tagging_type="POS", tagged_tokens=tagged,
    )


def parse_bracketed_tree(tree: str, num_tokens: int) -> list[Constituent]:
    """Read a Penn-style tree into preorder-numbered constituents.

    Words are leaves, not constituents; each constituent covers the
    half-open range of leaf positions beneath it. An unlabelled outer
    bracket, as in ``( (S ...) )``, yields a constituent with tag "".
    """
    items = _TREE_ITEM_RE.findall(tree)
    if not items:
        raise ParseLayerError("empty constituency tree")
    slots: list[Constituent | None] = []
    pos = 0
    leaf = 0

    def read_node() -> int:
        nonlocal pos, leaf
        if items[pos] != "(":
            raise ParseLayerError(f"expected '(' at item {pos} of {tree!r}")
        pos += 1
        tag = ""
        if pos < len(items) and items[pos] not in ("(", ")"):
            tag = items[pos]
            pos += 1
        node_id = len(slots)
        slots.append(None)
        start = leaf
        child_ids: list[int] = []
        while pos < len(items) and items[pos] != ")":
            if items[pos] == "(":
                child_ids.append(read_node())
            else:
                leaf += 1
                pos += 1
        if pos >= len(items):
            raise ParseLayerError(f"unbalanced constituency tree {tree!r}")
        pos += 1
        slots[node_id] = Constituent(
            id=node_id, tag=tag, child_ids=tuple(child_ids), start=start, ending=leaf,
        )
        return node_id

    read_node()
    if pos != len(items):
        raise ParseLayerError(f"trailing material after tree in {tree!r}")
    if leaf != num_tokens:
        raise AnnotationCountMismatchError(
            "constituency leaves", expected=num_tokens, actual=leaf,
        )
    return [c for c in slots if c is not None]


def constituency_parse(
    tree: str, num_tokens: int, metadata: AnnotationMetadata,
) -> Parse:
    return Parse(
        uuid=new_id(),
        metadata=metadata,
        constituents=parse_bracketed_tree(tree, num_tokens),
    )


def dependency_parse(
    arcs: Iterable[DependencyArc], num_tokens: int, metadata: AnnotationMetadata,
) -> DependencyParse:
    deps: list[Dependency] = []
    for arc in arcs:
        # governor -1 marks the root; every other index must be in range
        if not -1 <= arc.governor < num_tokens:
            raise IndexOutOfRangeError(
                "dependency governor", index=arc.governor, size=num_tokens,
            )
        if not 0 <= arc.dependent < num_tokens:
            raise IndexOutOfRangeError(
                "dependency token", index=arc.dependent, size=num_tokens,
            )
        gov = None if arc.governor == -1 else arc.governor
        deps.append(Dependency(gov=gov, dep=arc.dependent, edge_type=arc.relation))
    return DependencyParse(uuid=new_id(), metadata=metadata, dependencies=deps)


def convert_layers(
    record: FlatAnnotationRecord,
    num_tokens: int,
    metadata: AnnotationMetadata,
    layers: Iterable[str],
) -> ConvertedLayers:
    """Convert the requested layers of ``record``; absent layers stay None."""
    out = ConvertedLayers()
    for name in layers:
        if name == "pos" and record.pos_tags is not None:
            out.tagging = pos_tagging(record.pos_tags, num_tokens, metadata)
        elif name == "cparse" and record.constituency is not None:
            out.parse = constituency_parse(record.constituency, num_tokens, metadata)
        elif name == "dparse" and record.dependencies is not None:
            out.dependency_parse = dependency_parse(
                record.dependencies, num_tokens, metadata,
            )
    return out


def attach_layers(tokenization: Tokenization, converted: ConvertedLayers) -> None:
    if converted.tagging is not None:
        tokenization.token_taggings.append(converted.tagging)
    if converted.parse is not None:
        tokenization.parses.append(converted.parse)
    if converted.dependency_parse is not None:
        tokenization.dependency_parses.append(converted.dependency_parse)


def tokenization_from_record(
    record: FlatAnnotationRecord,
    metadata: AnnotationMetadata,
    *,
    layers: Iterable[str],
    restore_brackets: bool = True,
) -> Tokenization:
    """Build a fresh Tokenization carrying the record's tokens and layers."""
    tokens = tokens_from_external(record.tokens, restore_brackets=restore_brackets)
    tokenization = Tokenization(uuid=new_id(), metadata=metadata, tokens=tokens)
    attach_layers(tokenization, convert_layers(record, len(tokens), metadata, layers))
    return tokenization
