"""
Document storage abstraction.

Separates persistence from the session engine for testability.

Implementations:
- SqlDocumentStore (resilience_game.crud): SQLAlchemy async, sqlite or postgres (production)
- MemoryDocumentStore: in-memory dicts (testing, embedding callers)
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from uuid6 import uuid7

from resilience_game.errors import NotFoundError

Filter = Tuple[str, str, Any]
OrderBy = Tuple[str, str]

FILTER_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")
BATCH_ACTIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class BatchOperation:
    action: str
    collection: str
    doc_id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.action not in BATCH_ACTIONS:
            raise ValueError(f"Unknown batch action: {self.action}")


def new_document_id() -> str:
    return str(uuid7())


def _matches(document: Dict[str, Any], flt: Filter) -> bool:
    name, op, expected = flt
    if name not in document:
        return False
    actual = document[name]
    try:
        if op == "==":
            return actual == expected
        if op == "!=":
            return actual != expected
        if op == "<":
            return actual is not None and actual < expected
        if op == "<=":
            return actual is not None and actual <= expected
        if op == ">":
            return actual is not None and actual > expected
        if op == ">=":
            return actual is not None and actual >= expected
        if op == "in":
            return actual in expected
        if op == "array-contains":
            return isinstance(actual, list) and expected in actual
    except TypeError:
        # Values of different types never match an ordering filter.
        return False
    raise ValueError(f"Unknown filter operator: {op}")


def match_filters(document: Dict[str, Any], filters: Iterable[Filter]) -> bool:
    return all(_matches(document, flt) for flt in filters)


def sort_and_limit(
    documents: List[Dict[str, Any]],
    order_by: Optional[OrderBy] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Order documents by one field (missing values last) and cut to ``limit``."""
    if order_by is not None:
        name, direction = order_by
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction: {direction}")
        present = [doc for doc in documents if doc.get(name) is not None]
        missing = [doc for doc in documents if doc.get(name) is None]
        present.sort(key=lambda doc: doc[name], reverse=direction == "desc")
        documents = present + missing
    if limit is not None:
        documents = documents[:limit]
    return documents


def with_id(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    document = {key: value for key, value in data.items() if key != "id"}
    document["id"] = doc_id
    return document


class DocumentStore(ABC):
    """Async document/key-value port used by the session engine.

    Documents are plain JSON-compatible dicts and are always returned with an ``id`` key.
    """

    async def initialize(self) -> None:
        """Prepare the backing storage (tables etc.)."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document or None."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return the documents matching every filter."""

    @abstractmethod
    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Write a document and return its id.

        With an explicit ``doc_id`` an existing document is overwritten; without one a uuid7 id is generated.
        """

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Shallow-merge ``data`` into an existing document.

        Raises:
            NotFoundError: the document does not exist.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns True if it existed."""

    @abstractmethod
    async def batch(self, operations: Sequence[BatchOperation]) -> None:
        """Apply every operation or none of them."""


class MemoryDocumentStore(DocumentStore):
    """
    In-memory document storage.

    No I/O - documents are deep-copied on the way in and out so callers never
    share mutable state with the store.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def get(self, collection, doc_id):
        document = self.collections.get(collection, {}).get(doc_id)
        if document is None:
            return None
        return with_id(doc_id, copy.deepcopy(document))

    async def query(self, collection, filters=(), order_by=None, limit=None):
        documents = [
            with_id(doc_id, copy.deepcopy(document))
            for doc_id, document in self.collections.get(collection, {}).items()
        ]
        documents = [doc for doc in documents if match_filters(doc, filters)]
        return sort_and_limit(documents, order_by, limit)

    async def create(self, collection, data, doc_id=None):
        doc_id = doc_id or new_document_id()
        self._apply(self.collections, BatchOperation("create", collection, doc_id, data))
        logging.debug(f"Created {collection}/{doc_id}")
        return doc_id

    async def update(self, collection, doc_id, data):
        self._apply(self.collections, BatchOperation("update", collection, doc_id, data))

    async def delete(self, collection, doc_id):
        existed = doc_id in self.collections.get(collection, {})
        self._apply(self.collections, BatchOperation("delete", collection, doc_id))
        return existed

    async def batch(self, operations):
        # Work on a copy so a failing operation leaves the store untouched.
        staged = copy.deepcopy(self.collections)
        for operation in operations:
            self._apply(staged, operation)
        self.collections = staged

    @staticmethod
    def _apply(collections: Dict[str, Dict[str, Dict[str, Any]]], operation: BatchOperation) -> None:
        documents = collections.setdefault(operation.collection, {})
        data = {key: value for key, value in copy.deepcopy(operation.data).items() if key != "id"}
        if operation.action == "create":
            documents[operation.doc_id] = data
        elif operation.action == "update":
            if operation.doc_id not in documents:
                raise NotFoundError(operation.collection, operation.doc_id)
            documents[operation.doc_id].update(data)
        else:
            documents.pop(operation.doc_id, None)

    def clear(self) -> None:
        """Drop every collection (test utility)."""
        self.collections.clear()
