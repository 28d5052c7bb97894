"""
Async MongoDB item store.

Provides:
- MongoItemStore: lifecycle of a shared AsyncIOMotorClient and collection handles
- MongoItemCollection: the item operations expressed as MongoDB filters/updates

Documents look like:
    {"_id": ObjectId, "data": {...}, "used": bool, "assignedTo": str?, "createdBy": str?, "createdAt": Date?}
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient  # type: ignore
from pymongo.errors import PyMongoError

from ..core.errors import ConfigurationError, NotConnected, StorageOperationFailed
from ..core.logger import get_logger
from .base import ItemCollection, ItemStore, SelectionPolicy, StoredItem

_logger = get_logger(__name__)


def _to_item(doc: Dict[str, Any]) -> StoredItem:
    return StoredItem(
        id=str(doc["_id"]),
        data=doc.get("data") or {},
        used=bool(doc.get("used", False)),
        assigned_to=doc.get("assignedTo"),
        created_by=doc.get("createdBy"),
        created_at=doc.get("createdAt"),
    )


def _object_id(item_id: str) -> Any:
    return ObjectId(item_id) if ObjectId.is_valid(item_id) else item_id


class MongoItemCollection(ItemCollection):
    """Item operations over a single motor collection."""

    def __init__(self, name: str, collection):
        super().__init__(name)
        self._collection = collection

    @contextmanager
    def _driver_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as exc:
            _logger.error(
                "MongoDB operation failed.",
                exc_info=exc,
                extra={"collection": self.name, "operation": operation},
            )
            raise StorageOperationFailed(f"{operation} failed on {self.name}: {exc}", collection=self.name) from exc

    async def count(self) -> int:
        with self._driver_errors("count"):
            return await self._collection.count_documents({})

    async def insert_many(self, docs: Sequence[Dict[str, Any]]) -> List[str]:
        if not docs:
            return []
        with self._driver_errors("insert_many"):
            # insert_many adds _id to the dicts it is given; hand it copies
            result = await self._collection.insert_many([dict(d) for d in docs])
        return [str(oid) for oid in result.inserted_ids]

    async def find_candidate(
        self,
        exclude_user: Optional[str] = None,
        policy: SelectionPolicy = SelectionPolicy.FIRST,
    ) -> Optional[StoredItem]:
        query: Dict[str, Any] = {"used": False}
        if exclude_user is not None:
            # $ne also matches documents without an assignedTo field
            query["assignedTo"] = {"$ne": exclude_user}

        with self._driver_errors("find_candidate"):
            if policy == SelectionPolicy.RANDOM:
                cursor = self._collection.aggregate([{"$match": query}, {"$sample": {"size": 1}}])
                docs = await cursor.to_list(length=1)
                doc = docs[0] if docs else None
            else:
                doc = await self._collection.find_one(query)
        return _to_item(doc) if doc else None

    async def assign(self, item_id: str, user_id: str) -> None:
        with self._driver_errors("assign"):
            await self._collection.update_one(
                {"_id": _object_id(item_id)},
                {"$set": {"used": True, "assignedTo": user_id}},
            )

    async def reset_all(self) -> int:
        with self._driver_errors("reset_all"):
            result = await self._collection.update_many(
                {},
                {"$set": {"used": False}, "$unset": {"assignedTo": ""}},
            )
        return result.matched_count

    async def mark_all_used(self) -> int:
        with self._driver_errors("mark_all_used"):
            result = await self._collection.update_many({"used": False}, {"$set": {"used": True}})
        return result.modified_count

    async def delete_by_creator(self, user_id: str) -> int:
        with self._driver_errors("delete_by_creator"):
            result = await self._collection.delete_many({"createdBy": user_id})
        return result.deleted_count

    async def list_items(self) -> List[StoredItem]:
        with self._driver_errors("list_items"):
            docs = await self._collection.find({}).to_list(length=None)
        return [_to_item(d) for d in docs]


# PUBLIC_INTERFACE
class MongoItemStore(ItemStore):
    """Item store backed by a MongoDB database through motor."""

    def __init__(self, uri: Optional[str], db_name: str, client_factory=AsyncIOMotorClient):
        if not (uri or "").strip():
            raise ConfigurationError("MongoDB URI is required for the MongoDB item store")
        if not (db_name or "").strip():
            raise ConfigurationError("MongoDB database name is required for the MongoDB item store")
        self._uri = uri
        self._db_name = db_name
        self._client_factory = client_factory
        self._client: Optional[AsyncIOMotorClient] = None

    async def connect(self) -> None:
        """Create the client and verify the server answers a ping.

        Safe to call multiple times; subsequent calls keep the existing client.
        """
        if self._client is not None:
            return
        client = self._client_factory(self._uri)
        try:
            await client.admin.command("ping")
        except PyMongoError as exc:
            _logger.error("MongoDB ping failed.", exc_info=exc)
            client.close()
            raise StorageOperationFailed(f"Could not connect to MongoDB: {exc}") from exc
        self._client = client
        _logger.info("MongoDB client initialized.", extra={"db_name": self._db_name})

    async def disconnect(self) -> None:
        """Close the client if it exists."""
        if self._client is None:
            return
        try:
            self._client.close()
            _logger.info("MongoDB client closed.")
        except PyMongoError as exc:
            _logger.error("Error while closing MongoDB client.", exc_info=exc)
        finally:
            self._client = None

    def is_connected(self) -> bool:
        return self._client is not None

    def get_collection(self, name: str) -> MongoItemCollection:
        if self._client is None:
            raise NotConnected("MongoDB client is not connected")
        return MongoItemCollection(name, self._client[self._db_name][name])

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as exc:
            _logger.warning("MongoDB ping failed.", exc_info=exc)
            return False
