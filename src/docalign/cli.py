"""Command-line entry point: annotate tokenized documents through an engine.

Usage::

    docalign INPUT [OUTPUT] [LANGUAGE] --engine package.module:factory

Input/output pairs are file → file, directory → directory or
.zip → .zip. OUTPUT defaults to INPUT (rewritten in place). LANGUAGE is
``en`` (default) or ``cn``; ``INPUT cn`` reads the second argument as
LANGUAGE and rewrites INPUT in place.

The engine factory is called with the AlignerConfig and must return an
object with an ``annotate_section(request)`` method.

A document that fails is logged, recorded in the ledger if one is given,
and skipped; the rest of the batch still runs. Exit status is 0 when
every document succeeded, 1 when any failed, 2 on usage errors.
"""
from __future__ import annotations

import argparse
import dataclasses
import importlib
import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from docalign.annotation_types import AnnotationEngine
from docalign.config import LANGUAGE_MODES, PRIMARY_LANGUAGE, AlignerConfig, load_config
from docalign.document_store import (
    ArchiveWriter,
    StoredEntry,
    StoreMode,
    decode_document,
    detect_mode,
    encode_document,
    iter_archive,
    iter_directory,
)
from docalign.errors import AlignmentError
from docalign.io_utils import write_bytes_atomic
from docalign.run_ledger import RunLedger
from docalign.section_injector import annotate_document

log = logging.getLogger("docalign")

EngineFactory = Callable[[AlignerConfig], AnnotationEngine]


@dataclass(slots=True)
class BatchResult:
    succeeded: list[str] = field(default_factory=list[str])
    failed: list[str] = field(default_factory=list[str])

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Annotate tokenized documents and align the results back in."
    )
    parser.add_argument("input", type=Path, help="Document file, directory or .zip")
    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="Output path of the same shape (default: rewrite INPUT)",
    )
    parser.add_argument(
        "language",
        nargs="?",
        default=None,
        help=f"Language code (default: {PRIMARY_LANGUAGE}; alternate: cn)",
    )
    parser.add_argument(
        "--engine",
        default=None,
        help="Engine factory as 'package.module:callable'",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="AlignerConfig JSON file",
    )
    parser.add_argument(
        "--ledger",
        type=Path,
        default=None,
        help="DuckDB file recording one row per processed document",
    )
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def shift_language_positional(args: argparse.Namespace) -> None:
    """Read ``INPUT LANGUAGE`` as a language code, not as an output path."""
    if (
        args.language is None
        and args.output is not None
        and str(args.output) in LANGUAGE_MODES
    ):
        args.language = str(args.output)
        args.output = None


def load_engine_factory(spec: str) -> EngineFactory:
    """Resolve ``package.module:callable`` to an engine factory."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Engine must look like 'package.module:callable', got {spec!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise ValueError(f"Engine factory {spec!r} is not callable")
    return factory


def resolve_config(args: argparse.Namespace) -> AlignerConfig:
    config = load_config(args.config) if args.config is not None else AlignerConfig()
    if args.language is not None:
        config = dataclasses.replace(config, language=args.language)
    return config


def annotate_entry(
    entry: StoredEntry, engine: AnnotationEngine, config: AlignerConfig,
) -> tuple[bytes, int]:
    """Decode, annotate and re-encode one document."""
    document = decode_document(entry.load())
    sections = annotate_document(document, engine, config)
    return encode_document(document), sections


def annotate_store(
    input_path: Path,
    output_path: Path,
    engine: AnnotationEngine,
    config: AlignerConfig,
    *,
    ledger: RunLedger | None = None,
) -> BatchResult:
    """Annotate every document in ``input_path`` into ``output_path``."""
    mode = detect_mode(input_path, output_path)
    result = BatchResult()

    def process(entry: StoredEntry, write: Callable[[str, bytes], None]) -> None:
        log.info("Annotating document: %s", entry.name)
        try:
            raw, sections = annotate_entry(entry, engine, config)
            write(entry.name, raw)
        except Exception as exc:
            log.error("Failed to annotate %s: %s: %s", entry.name, type(exc).__name__, exc)
            result.failed.append(entry.name)
            if ledger is not None:
                ledger.record_failure(entry.name, exc)
            return
        result.succeeded.append(entry.name)
        if ledger is not None:
            ledger.record_success(entry.name, sections_annotated=sections)

    if mode is StoreMode.FILE:
        entry = StoredEntry(name=input_path.name, load=input_path.read_bytes)
        process(entry, lambda _name, raw: write_bytes_atomic(output_path, raw))
    elif mode is StoreMode.DIRECTORY:
        if output_path.exists() and not output_path.is_dir():
            raise NotADirectoryError(f"Output path {output_path} is not a directory.")
        output_path.mkdir(parents=True, exist_ok=True)
        for entry in iter_directory(input_path):
            process(entry, lambda name, raw: write_bytes_atomic(output_path / name, raw))
    else:
        with ArchiveWriter(output_path) as writer:
            for entry in iter_archive(input_path):
                process(entry, writer.add)

    log.info(
        "Done: %d documents annotated, %d failed",
        len(result.succeeded), len(result.failed),
    )
    return result


def main(
    argv: Sequence[str] | None = None,
    *,
    engine_factory: EngineFactory | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    shift_language_positional(args)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = resolve_config(args)
        if engine_factory is None:
            if args.engine is None:
                raise ValueError("an engine is required: pass --engine package.module:callable")
            engine_factory = load_engine_factory(args.engine)
    except (AlignmentError, ValueError, ImportError, AttributeError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    output_path = args.output if args.output is not None else args.input
    try:
        detect_mode(args.input, output_path)
    except (ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    log.info("Loading annotation engine for language %s", config.language)
    engine = engine_factory(config)

    if args.ledger is not None:
        with RunLedger(args.ledger) as ledger:
            result = annotate_store(args.input, output_path, engine, config, ledger=ledger)
            summary = ledger.summary()
            log.info(
                "Ledger run %s: %d ok, %d failed",
                summary.run_id, summary.succeeded, summary.failed,
            )
    else:
        result = annotate_store(args.input, output_path, engine, config)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
