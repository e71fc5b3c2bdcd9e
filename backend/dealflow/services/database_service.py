from typing import Optional, List, Dict, Any, Iterable
from datetime import datetime, timezone
from firebase_admin import firestore_async
from firebase_admin.firestore import FieldFilter
from google.api_core.exceptions import Conflict
import asyncio
import copy
import logging
import uuid

from ..firebaseConfig import get_firestore_client


class DatabaseError(Exception):
    """Database error for storage operations.

    Raised when Firestore operations fail due to database-level issues.
    """
    pass


class DuplicateKeyError(DatabaseError):
    """Raised when a create-only write finds the document already present."""
    pass


logger = logging.getLogger(__name__)


class DatabaseService:
    """Base database service for Firestore operations.

    Wraps one Firestore collection with the small set of primitives the
    repositories need: create-only inserts, reads, compare-and-set
    updates inside a transaction and filtered queries.

    Usage:
        ```python
        applications = DatabaseService("opportunity_applications")

        app_id = await applications.create({"status": "pending"}, doc_id="abc")
        app = await applications.get_by_id(app_id)

        # Only moves the document if it is still pending
        moved = await applications.compare_and_set(
            app_id, "status", {"pending"}, {"status": "withdrawn"}
        )
        ```

    Attributes:
        collection_name (str): Name of the Firestore collection
        max_query_limit (int): Maximum query limit (1000)
    """

    def __init__(self, collection_name: str, client=None):
        if not collection_name or not collection_name.strip():
            raise ValueError("Collection name is required")

        self.collection_name = collection_name.strip()
        self.max_query_limit = 1000
        self._client = client

    @property
    def db(self):
        if self._client is None:
            self._client = get_firestore_client()
        return self._client

    @property
    def collection(self):
        return self.db.collection(self.collection_name)

    async def health_check(self) -> bool:
        """Check database connection health."""
        try:
            async for _ in self.collection.limit(1).stream():
                break
            return True
        except Exception as e:
            logger.error(f"Health check failed for {self.collection_name}: {e}")
            return False

    async def create(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Create a new document in the collection.

        With an explicit doc_id the write is create-only: if a document with
        that id already exists, DuplicateKeyError is raised and nothing is
        written. This is how uniqueness constraints are expressed.

        Returns:
            str: The ID of the created document.
        """
        if not data or not isinstance(data, dict):
            raise ValueError("Data must be a non-empty dictionary")

        data = dict(data)
        data['created_at'] = firestore_async.SERVER_TIMESTAMP
        data['updated_at'] = firestore_async.SERVER_TIMESTAMP

        try:
            if doc_id:
                await self.collection.document(doc_id).create(data)
                return doc_id
            _, doc_ref = await self.collection.add(data)
            return doc_ref.id
        except Conflict as e:
            raise DuplicateKeyError(f"Document {doc_id} already exists in {self.collection_name}") from e
        except Exception as e:
            logger.error(f"Error creating document in {self.collection_name}: {e}")
            raise DatabaseError(f"Failed to create document: {str(e)}") from e

    async def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by its ID.

        Returns None (not an error) when the document doesn't exist, so callers
        can tell "no record" apart from a failed lookup, which raises
        DatabaseError.
        """
        if not doc_id:
            raise ValueError("Document ID is required")

        try:
            doc = await self.collection.document(doc_id).get()
        except Exception as e:
            logger.error(f"Error getting document {doc_id} from {self.collection_name}: {e}")
            raise DatabaseError(f"Failed to get document: {str(e)}") from e

        if not doc.exists:
            return None
        data = doc.to_dict()
        data['id'] = doc.id
        return data

    async def compare_and_set(self, doc_id: str, field: str, expected: Iterable[Any],
                              data: Dict[str, Any]) -> bool:
        """Apply `data` only if `field` currently holds one of `expected`.

        Runs read and write in one Firestore transaction, so two concurrent
        callers can never both observe the expected value and both write.

        Returns:
            bool: True if the write happened, False if the document is missing
            or the field no longer matches.
        """
        expected = set(expected)
        doc_ref = self.collection.document(doc_id)
        data = dict(data)
        data['updated_at'] = firestore_async.SERVER_TIMESTAMP

        @firestore_async.async_transactional
        async def _compare_and_set(transaction):
            snapshot = await doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            if (snapshot.to_dict() or {}).get(field) not in expected:
                return False
            transaction.update(doc_ref, data)
            return True

        try:
            return await _compare_and_set(self.db.transaction())
        except Exception as e:
            logger.error(f"Error in compare-and-set on {doc_id} in {self.collection_name}: {e}")
            raise DatabaseError(f"Failed to update document: {str(e)}") from e

    async def query(self, filters: List[FieldFilter], limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """Query documents with a list of FieldFilter conditions."""
        if limit < 1 or limit > self.max_query_limit:
            raise ValueError(f"Limit must be between 1 and {self.max_query_limit}")
        if offset < 0:
            raise ValueError("Offset must be non-negative")

        try:
            query = self.collection
            for filter_condition in filters:
                query = query.where(filter=filter_condition)
            query = query.limit(limit).offset(offset)

            results = []
            async for doc in query.stream():
                data = doc.to_dict()
                data['id'] = doc.id
                results.append(data)
            return results
        except Exception as e:
            logger.error(f"Error querying documents from {self.collection_name}: {e}")
            raise DatabaseError(f"Failed to query documents: {str(e)}") from e

    async def delete(self, doc_id: str) -> bool:
        """Delete a document by ID. Does not fail if it doesn't exist."""
        try:
            await self.collection.document(doc_id).delete()
            return True
        except Exception as e:
            logger.error(f"Error deleting document {doc_id} from {self.collection_name}: {e}")
            raise DatabaseError(f"Failed to delete document: {str(e)}") from e


def _matches(document: Dict[str, Any], condition: FieldFilter) -> bool:
    value = document.get(condition.field_path)
    op = condition.op_string
    if op == "==":
        return value == condition.value
    if op == "!=":
        return value != condition.value
    if op == "in":
        return value in condition.value
    if op == "not-in":
        return value not in condition.value
    raise ValueError(f"Unsupported operator for in-memory store: {op}")


class InMemoryDatabaseService:
    """Process-local stand-in for DatabaseService.

    Same interface and semantics (create-only ids, compare-and-set under a
    lock, FieldFilter queries with ==, !=, in, not-in). Used when
    STORAGE_BACKEND=memory and by the test suite.
    """

    def __init__(self, collection_name: str):
        if not collection_name or not collection_name.strip():
            raise ValueError("Collection name is required")
        self.collection_name = collection_name.strip()
        self.max_query_limit = 1000
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def health_check(self) -> bool:
        return True

    async def create(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        if not data or not isinstance(data, dict):
            raise ValueError("Data must be a non-empty dictionary")
        async with self._lock:
            doc_id = doc_id or uuid.uuid4().hex
            if doc_id in self._documents:
                raise DuplicateKeyError(f"Document {doc_id} already exists in {self.collection_name}")
            now = datetime.now(timezone.utc)
            document = copy.deepcopy(data)
            document['created_at'] = now
            document['updated_at'] = now
            self._documents[doc_id] = document
            return doc_id

    async def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        if not doc_id:
            raise ValueError("Document ID is required")
        document = self._documents.get(doc_id)
        if document is None:
            return None
        data = copy.deepcopy(document)
        data['id'] = doc_id
        return data

    async def compare_and_set(self, doc_id: str, field: str, expected: Iterable[Any],
                              data: Dict[str, Any]) -> bool:
        expected = set(expected)
        async with self._lock:
            document = self._documents.get(doc_id)
            if document is None or document.get(field) not in expected:
                return False
            document.update(copy.deepcopy(data))
            document['updated_at'] = datetime.now(timezone.utc)
            return True

    async def query(self, filters: List[FieldFilter], limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        if limit < 1 or limit > self.max_query_limit:
            raise ValueError(f"Limit must be between 1 and {self.max_query_limit}")
        if offset < 0:
            raise ValueError("Offset must be non-negative")
        results = []
        for doc_id, document in self._documents.items():
            if all(_matches(document, condition) for condition in filters):
                data = copy.deepcopy(document)
                data['id'] = doc_id
                results.append(data)
        return results[offset:offset + limit]

    async def delete(self, doc_id: str) -> bool:
        async with self._lock:
            self._documents.pop(doc_id, None)
        return True
