"""
Base protocol and types for the document store abstraction.

The document store is a multi-tenant hierarchical key/value store:

    tenant (user id) -> collection -> document id -> JSON document

Every document carries a version that is incremented on each write, which
lets callers perform compare-and-set writes. The store offers per-document
atomic writes only; there are no multi-document transactions.

Invariants:
    - Tenants are fully isolated from each other
    - Every write to a document increments its version by exactly one
    - append_to_array() preserves order and never deduplicates values
    - Backend I/O failures surface as StoreUnavailableError

How to change safely:
    - Protocol changes require updating every backend
    - Keep the in-memory and SQLite backends behaviourally identical;
      the shared backend tests exercise both
"""

from __future__ import annotations

import time
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import Settings


def now_ms() -> int:
    """Current wall clock time in Unix milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Document:
    """A stored document.

    Attributes:
        doc_id: Document identifier, unique within its collection
        data: Document fields
        version: Write counter, starts at 1 on creation
        updated_at: Time of the last write (Unix ms)
    """

    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    version: int = 1
    updated_at: int = 0


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.set("user_1", "availability", "2024-01-01", {"availability": []})
        >>> doc = await store.get("user_1", "availability", "2024-01-01")
        >>> doc.version
        1
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the store. Must be called before any other operation."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the store is ready for use."""
        ...

    @abstractmethod
    async def get(self, tenant_id: str, collection: str, doc_id: str) -> Document | None:
        """Fetch a document, or None if it does not exist."""
        ...

    @abstractmethod
    async def set(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> Document:
        """Create or replace a document.

        Args:
            tenant_id: Owning tenant
            collection: Collection name
            doc_id: Document identifier
            data: Full document body
            expected_version: If given, the write only succeeds when the
                stored version equals it (0 means the document must not exist)

        Returns:
            The document as written

        Raises:
            VersionConflictError: If expected_version does not match
            StoreUnavailableError: On backend failure
        """
        ...

    @abstractmethod
    async def append_to_array(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
        field_name: str,
        value: Any,
    ) -> Document:
        """Atomically append a value to an array field.

        Creates the document with ``{field_name: [value]}`` if it does not exist.
        """
        ...

    @abstractmethod
    async def delete(self, tenant_id: str, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if there was nothing to delete."""
        ...

    @abstractmethod
    async def add(self, tenant_id: str, collection: str, data: dict[str, Any]) -> Document:
        """Insert a document under a generated id."""
        ...

    @abstractmethod
    async def list_documents(
        self,
        tenant_id: str,
        collection: str,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[Document]:
        """List every document in a collection.

        Args:
            tenant_id: Owning tenant
            collection: Collection name
            order_by: Optional top-level field to sort by (documents without
                the field sort first)
            descending: Reverse the sort order

        Returns:
            Documents ordered by ``order_by``, or by document id when unset
        """
        ...


def create_document_store(settings: "Settings") -> DocumentStore:
    """Factory function to create a document store from settings.

    Raises:
        ValueError: If the backend is not supported
    """
    from ..config import StoreBackend
    from .memory import InMemoryDocumentStore
    from .sqlite import SqliteDocumentStore

    if settings.store_backend == StoreBackend.MEMORY:
        return InMemoryDocumentStore()
    elif settings.store_backend == StoreBackend.SQLITE:
        return SqliteDocumentStore(
            data_dir=settings.data_dir,
            wal_mode=settings.sqlite_wal_mode,
            busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported store backend: {settings.store_backend}")
