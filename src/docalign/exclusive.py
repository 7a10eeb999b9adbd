"""Per-document exclusive access.

Alignment mutates a Document in place, so two calls against the same
instance must not interleave. Each Document gets its own lock, held in a
weak-keyed registry so documents are not kept alive by it.
"""
from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

from docalign.document_types import Document

_registry_lock = threading.Lock()
_document_locks: weakref.WeakKeyDictionary[Document, threading.RLock] = (
    weakref.WeakKeyDictionary()
)


def _lock_for(document: Document) -> threading.RLock:
    with _registry_lock:
        lock = _document_locks.get(document)
        if lock is None:
            lock = threading.RLock()
            _document_locks[document] = lock
        return lock


@contextmanager
def exclusive(document: Document) -> Iterator[Document]:
    """Hold ``document``'s lock for the duration of the block."""
    lock = _lock_for(document)
    with lock:
        yield document
