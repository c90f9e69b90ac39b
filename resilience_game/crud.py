# import database
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy import delete, func, select
from typing import Any, Dict, List, Optional, Sequence
import logging

from resilience_game.document_store import (
    FILTER_OPERATORS,
    BatchOperation,
    DocumentStore,
    Filter,
    OrderBy,
    match_filters,
    new_document_id,
    with_id,
)
from resilience_game.errors import NotFoundError
from resilience_game.models.schemas import Base, Document, utc_now


def _json_field(name: str, sample: Any):
    """Typed accessor for one top-level field of the payload, typed after ``sample``."""
    element = Document.data[name]
    if isinstance(sample, bool):
        return element.as_boolean()
    if isinstance(sample, int):
        return element.as_integer()
    if isinstance(sample, float):
        return element.as_float()
    return element.as_string()


def _runs_in_sql(flt: Filter) -> bool:
    name, op, value = flt
    if op not in FILTER_OPERATORS:
        raise ValueError(f"Unknown filter operator: {op}")
    if op == "array-contains":
        return False
    if op == "in":
        return None not in value
    return value is not None


def _condition(flt: Filter):
    name, op, value = flt
    if op == "in":
        values = list(value)
        return _json_field(name, values[0] if values else "").in_(values)
    field = _json_field(name, value)
    if op == "==":
        return field == value
    if op == "!=":
        return field != value
    if op == "<":
        return field < value
    if op == "<=":
        return field <= value
    if op == ">":
        return field > value
    return field >= value


class SqlDocumentStore(DocumentStore):
    """Document store on one SQLAlchemy table, keyed by (collection, doc_id).

    Every public method opens its own AsyncSession; writes commit through
    ``session.begin()`` so ``batch`` is a single transaction.
    """

    def __init__(self, session_factory: async_sessionmaker, engine: AsyncEngine):
        self.session_factory = session_factory
        self.engine = engine

    async def initialize(self) -> None:
        """Create table if not exists"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logging.info("Document table is ready")

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Read one document

        Args:
            collection (str): Collection name
            doc_id (str): Document id inside the collection

        Returns:
            Optional[Dict[str, Any]]: The document with its "id", or None
        """
        async with self.session_factory() as session:
            try:
                row = await session.get(Document, (collection, doc_id))
                if row is None:
                    return None
                return with_id(row.doc_id, dict(row.data))
            except Exception as e:
                logging.error(f"Failed to read {collection}/{doc_id}: {e}")
                raise

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Read the documents matching every filter

        Filters, ordering and limit run in SQL; only filters JSON paths cannot
        express (``array-contains``, comparisons with None) are checked on the
        fetched rows, and then the limit is applied after them.

        Args:
            collection (str): Collection name
            filters (Sequence[Filter]): (field, operator, value) triples
            order_by (Optional[OrderBy]): (field, "asc" | "desc"), missing values last
            limit (Optional[int]): Maximum number of documents

        Returns:
            List[Dict[str, Any]]: Matching documents with their "id"
        """
        pushed = [flt for flt in filters if _runs_in_sql(flt)]
        remaining = [flt for flt in filters if not _runs_in_sql(flt)]

        stmt = select(Document).where(Document.collection == collection, *[_condition(flt) for flt in pushed])
        if order_by is not None:
            name, direction = order_by
            if direction not in ("asc", "desc"):
                raise ValueError(f"Unknown sort direction: {direction}")
            key = self._sort_key(name)
            stmt = stmt.order_by((key.desc() if direction == "desc" else key.asc()).nulls_last())
        # Creation order breaks ties, as in MemoryDocumentStore.
        stmt = stmt.order_by(Document.created_at, Document.doc_id)
        if limit is not None and not remaining:
            stmt = stmt.limit(limit)

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                rows = result.scalars().all()
            except Exception as e:
                logging.error(f"Failed to query {collection}: {e}")
                raise
        documents = [with_id(row.doc_id, dict(row.data)) for row in rows]
        if remaining:
            documents = [doc for doc in documents if match_filters(doc, remaining)]
            if limit is not None:
                documents = documents[:limit]
        return documents

    def _sort_key(self, name: str):
        # json_extract keeps numbers numeric on sqlite; jsonb compares by type on postgres.
        if self.engine.dialect.name == "sqlite":
            return func.json_extract(Document.data, f'$."{name}"')
        return Document.data[name]

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or new_document_id()
        await self.batch([BatchOperation("create", collection, doc_id, data)])
        return doc_id

    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await self.batch([BatchOperation("update", collection, doc_id, data)])

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    result = await session.execute(
                        delete(Document).where(Document.collection == collection, Document.doc_id == doc_id)
                    )
                return result.rowcount > 0
            except Exception as e:
                logging.error(f"Failed to delete {collection}/{doc_id}: {e}")
                raise

    async def batch(self, operations: Sequence[BatchOperation]) -> None:
        """Apply create/update/delete operations in one transaction

        Args:
            operations (Sequence[BatchOperation]): Operations applied in order

        Raises:
            NotFoundError: An update targets a missing document; nothing is written
        """
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    for operation in operations:
                        await self._apply(session, operation)
            except NotFoundError:
                raise
            except Exception as e:
                logging.error(f"Failed to write batch of {len(operations)} operation(s): {e}")
                raise

    @staticmethod
    async def _apply(session: AsyncSession, operation: BatchOperation) -> None:
        data = {key: value for key, value in operation.data.items() if key != "id"}
        row = await session.get(Document, (operation.collection, operation.doc_id))
        if operation.action == "create":
            if row is None:
                session.add(Document(collection=operation.collection, doc_id=operation.doc_id, data=data))
            else:
                row.data = data
                row.updated_at = utc_now()
        elif operation.action == "update":
            if row is None:
                raise NotFoundError(operation.collection, operation.doc_id)
            # Reassign so the JSON column is flagged as modified.
            row.data = {**row.data, **data}
            row.updated_at = utc_now()
        elif row is not None:
            await session.delete(row)
        # Make the row visible to later operations of the same batch.
        await session.flush()
