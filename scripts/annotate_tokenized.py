#!/usr/bin/env python3
"""Annotate tokenized documents with an external NLP engine.

Thin wrapper over ``docalign.cli`` for running from a checkout without
installing the package.

Usage:
    # Single document
    python3 scripts/annotate_tokenized.py in.json out.json --engine mypkg.engine:build

    # Directory of documents, Chinese sentence-text mode
    python3 scripts/annotate_tokenized.py docs/ annotated/ cn --engine mypkg.engine:build

    # Archive to archive, with a run ledger
    python3 scripts/annotate_tokenized.py in.zip out.zip \
      --engine mypkg.engine:build --ledger runs/ledger.duckdb
"""
from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from docalign.cli import main

if __name__ == "__main__":
    sys.exit(main())
