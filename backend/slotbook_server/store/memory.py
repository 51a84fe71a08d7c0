"""
In-memory document store implementation.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Callers never receive references to stored data (values are deep-copied)
    - Same versioning and ordering semantics as the SQLite backend

How to change safely:
    - Keep interface compatible with the DocumentStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from collections import defaultdict
from typing import Any

from ..errors import StoreUnavailableError, VersionConflictError
from .base import Document, now_ms

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore.

    Thread safety:
        Uses an asyncio lock around every write. Safe to use from
        multiple coroutines on one event loop.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.append_to_array("user_1", "availability", "2024-01-01",
        ...                             "availability", {"start": 9})
    """

    def __init__(self) -> None:
        # tenant -> collection -> doc_id -> Document
        self._data: dict[str, dict[str, dict[str, Document]]] = defaultdict(
            lambda: defaultdict(dict)
        )
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryDocumentStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._data.clear()
        logger.debug("InMemoryDocumentStore closed")

    def _check_connected(self) -> None:
        if not self._connected:
            raise StoreUnavailableError("Document store is not connected", backend="memory")

    def _collection(self, tenant_id: str, collection: str) -> dict[str, Document]:
        return self._data[tenant_id][collection]

    async def get(self, tenant_id: str, collection: str, doc_id: str) -> Document | None:
        self._check_connected()
        doc = self._collection(tenant_id, collection).get(doc_id)
        return copy.deepcopy(doc) if doc else None

    async def set(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        self._check_connected()
        async with self._lock:
            docs = self._collection(tenant_id, collection)
            current = docs.get(doc_id)
            current_version = current.version if current else 0

            if expected_version is not None and expected_version != current_version:
                raise VersionConflictError(
                    f"Document {collection}/{doc_id} is at version {current_version}, "
                    f"expected {expected_version}",
                    expected_version=expected_version,
                    actual_version=current_version,
                )

            doc = Document(
                doc_id=doc_id,
                data=copy.deepcopy(data),
                version=current_version + 1,
                updated_at=now_ms(),
            )
            docs[doc_id] = doc
            return copy.deepcopy(doc)

    async def append_to_array(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        field_name: str,
        value: Any,
    ) -> Document:
        self._check_connected()
        async with self._lock:
            docs = self._collection(tenant_id, collection)
            current = docs.get(doc_id)
            if current is None:
                doc = Document(
                    doc_id=doc_id,
                    data={field_name: [copy.deepcopy(value)]},
                    version=1,
                    updated_at=now_ms(),
                )
            else:
                data = copy.deepcopy(current.data)
                data.setdefault(field_name, []).append(copy.deepcopy(value))
                doc = Document(
                    doc_id=doc_id,
                    data=data,
                    version=current.version + 1,
                    updated_at=now_ms(),
                )
            docs[doc_id] = doc
            return copy.deepcopy(doc)

    async def delete(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        self._check_connected()
        async with self._lock:
            return self._collection(tenant_id, collection).pop(doc_id, None) is not None

    async def add(self, tenant_id: str, collection: str, data: dict[str, Any]) -> Document:
        self._check_connected()
        async with self._lock:
            doc = Document(
                doc_id=uuid.uuid4().hex,
                data=copy.deepcopy(data),
                version=1,
                updated_at=now_ms(),
            )
            self._collection(tenant_id, collection)[doc.doc_id] = doc
            return copy.deepcopy(doc)

    async def list_documents(
        self,
        tenant_id: str,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        self._check_connected()
        stored = self._collection(tenant_id, collection).values()
        if order_by is None:
            ordered = sorted(stored, key=lambda d: d.doc_id, reverse=descending)
        else:
            # Insertion position stands in for SQLite's rowid on ties
            positioned = sorted(
                enumerate(stored),
                key=lambda p: (order_by in p[1].data, p[1].data.get(order_by), p[0]),
                reverse=descending,
            )
            ordered = [doc for _, doc in positioned]
        return [copy.deepcopy(d) for d in ordered]

    # --- Testing helpers ---

    def tenant_ids(self) -> list[str]:
        """Tenants that have stored at least one document."""
        return sorted(t for t, cols in self._data.items() if any(cols.values()))

    def document_count(self, tenant_id: str, collection: str) -> int:
        """Number of documents in a collection."""
        return len(self._data.get(tenant_id, {}).get(collection, {}))
