"""
Item rotation: hand out one unused item per request and recycle the pool.

acquire_item() runs against any ItemStore:

1. An empty collection is seeded with its sample payloads.
2. A candidate is an item with used == false whose assignedTo is not the caller.
3. The candidate is marked used and assigned to the caller.
4. With no candidate left every item is reset (used=false, assignedTo cleared)
   and selection runs once more without the assignedTo filter.

A user who holds every item therefore triggers a full reset on each request.

The read (find_candidate) and the write (assign) are separate store calls with
no lock between them, so two concurrent requests can receive the same item.
"""

from typing import Any, Dict, Optional, Sequence

from pydantic import BaseModel, Field

from ..core.logger import get_logger
from ..db.base import ItemStore, SelectionPolicy, new_item_document

logger = get_logger(__name__)


# PUBLIC_INTERFACE
class AcquireResult(BaseModel):
    """Outcome of acquire_item; success=False means the collection had nothing to hand out."""
    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)


# PUBLIC_INTERFACE
async def acquire_item(
    store: ItemStore,
    collection_name: str,
    user_id: str,
    sample_data: Optional[Sequence[Dict[str, Any]]] = None,
    policy: SelectionPolicy = SelectionPolicy.RANDOM,
) -> AcquireResult:
    """Assign one available item of collection_name to user_id and return its payload.

    Args:
        store: connected item store.
        collection_name: collection to draw from.
        user_id: opaque id of the requesting user.
        sample_data: payloads inserted when the collection is empty.
        policy: how to pick among several candidates.

    Returns:
        AcquireResult with the item payload, or success=False and an error
        message when the collection is empty even after seeding and reset.

    Raises:
        NotConnected, StorageOperationFailed: propagated from the store.
    """
    collection = store.get_collection(collection_name)

    if await collection.count() == 0 and sample_data:
        await collection.insert_many([new_item_document(p) for p in sample_data])
        logger.info("Initialized sample items.", extra={"collection": collection_name, "count": len(sample_data)})

    item = await collection.find_candidate(exclude_user=user_id, policy=policy)
    if item is None:
        reset = await collection.reset_all()
        logger.info(
            "No candidate left; rotation reset.",
            extra={"collection": collection_name, "user_id": user_id, "reset_count": reset},
        )
        item = await collection.find_candidate(policy=policy)

    if item is None:
        return AcquireResult(success=False, data={"error": f"No {collection_name} available"})

    await collection.assign(item.id, user_id)
    logger.debug("Item assigned.", extra={"collection": collection_name, "item_id": item.id, "user_id": user_id})
    return AcquireResult(success=True, data=item.data)
