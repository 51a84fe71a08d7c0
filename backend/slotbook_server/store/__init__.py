"""
Document store abstraction for Slotbook.

This module provides a pluggable multi-tenant document store supporting:
- SQLite (one database file per tenant, for deployment)
- In-memory (for testing and local development)

Invariants:
    - Per-document writes are atomic; there are no multi-document transactions
    - Every document write increments its version
    - Backend failures surface as StoreUnavailableError

How to change safely:
    - New backends must implement the DocumentStore protocol
    - Run the shared backend tests against every backend
"""

from .base import Document, DocumentStore, create_document_store
from .memory import InMemoryDocumentStore
from .sqlite import SqliteDocumentStore

__all__ = [
    # Protocol and types
    "DocumentStore",
    "Document",
    # Factory
    "create_document_store",
    # Implementations
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
]
