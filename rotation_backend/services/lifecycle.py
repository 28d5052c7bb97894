"""
Bulk item operations layered on the item store: create, seed, consume, delete.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from pydantic import BaseModel, Field

from ..core.logger import get_logger
from ..db.base import ItemStore, new_item_document
from ..models.collections import CollectionConfig

logger = get_logger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


# PUBLIC_INTERFACE
class CreateResult(BaseModel):
    """Count and identifiers of freshly inserted items."""
    inserted_count: int
    inserted_ids: List[str] = Field(default_factory=list)


# PUBLIC_INTERFACE
class ReplaceResult(CreateResult):
    """CreateResult plus the number of the user's previous items that were deleted."""
    deleted_count: int = 0


# PUBLIC_INTERFACE
async def create_items(
    store: ItemStore,
    collection_name: str,
    user_id: str,
    items: Sequence[Mapping[str, Any]],
) -> CreateResult:
    """Insert payloads as unused, unassigned items created by user_id now."""
    collection = store.get_collection(collection_name)
    created_at = _now_utc()
    docs = [new_item_document(dict(p), created_by=user_id, created_at=created_at) for p in items]
    ids = await collection.insert_many(docs)
    logger.info("Items created.", extra={"collection": collection_name, "user_id": user_id, "count": len(ids)})
    return CreateResult(inserted_count=len(ids), inserted_ids=ids)


# PUBLIC_INTERFACE
async def mark_all_items_as_used(store: ItemStore, collection_name: str) -> int:
    """Flag every unused item as used; returns the modified count."""
    modified = await store.get_collection(collection_name).mark_all_used()
    logger.info("Marked all items as used.", extra={"collection": collection_name, "modified": modified})
    return modified


# PUBLIC_INTERFACE
async def delete_items_by_user(store: ItemStore, collection_name: str, user_id: str) -> int:
    """Delete every item created by user_id; returns the deleted count."""
    deleted = await store.get_collection(collection_name).delete_by_creator(user_id)
    logger.info(
        "Deleted items by creator.",
        extra={"collection": collection_name, "user_id": user_id, "deleted": deleted},
    )
    return deleted


# PUBLIC_INTERFACE
async def replace_user_items(
    store: ItemStore,
    collection_name: str,
    user_id: str,
    items: Sequence[Mapping[str, Any]],
) -> ReplaceResult:
    """Delete the user's previous items, then create the new batch.

    The deletion is not undone when the insert fails; the insert error propagates.
    """
    deleted = await delete_items_by_user(store, collection_name, user_id)
    created = await create_items(store, collection_name, user_id, items)
    return ReplaceResult(deleted_count=deleted, **created.model_dump())


async def _seed_if_empty(store: ItemStore, config: CollectionConfig) -> int:
    collection = store.get_collection(config.name)
    if await collection.count() != 0:
        return 0
    payloads = config.sample_payloads()
    if not payloads:
        return 0
    await collection.insert_many([new_item_document(p) for p in payloads])
    logger.info("Initialized sample items.", extra={"collection": config.name, "count": len(payloads)})
    return len(payloads)


# PUBLIC_INTERFACE
async def initialize_collections(store: ItemStore, collections: Iterable[CollectionConfig]) -> Dict[str, int]:
    """Seed every empty collection with its sample data.

    Returns a mapping of collection name to the number of items inserted
    (0 for collections that already had items).
    """
    seeded: Dict[str, int] = {}
    for config in collections:
        seeded[config.name] = await _seed_if_empty(store, config)
    return seeded
