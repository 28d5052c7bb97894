"""
Storage-engine independent item store contract.

An ItemStore owns a connection and hands out ItemCollection handles, one per
named collection (a MongoDB collection or a SQL table). The rotation engine and
the lifecycle operations are written only against these two classes.

Every stored item carries:
- data: the schema-less payload, never inspected here
- used: whether the item has been handed out in the current rotation
- assignedTo: user id that received the item last (absent when unassigned)
- createdBy / createdAt: set when a user creates the item
"""

import copy
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field


# PUBLIC_INTERFACE
class SelectionPolicy(str, Enum):
    """How find_candidate picks among several matching items."""

    FIRST = "first"
    RANDOM = "random"


# PUBLIC_INTERFACE
class StoredItem(BaseModel):
    """An item as read back from a store."""

    id: str = Field(..., description="Store-assigned identifier rendered as a string.")
    data: Dict[str, Any] = Field(default_factory=dict, description="Opaque payload.")
    used: bool = False
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class ItemCollection(ABC):
    """Handle over one named collection of items."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def count(self) -> int:
        """Return the number of items in the collection."""

    @abstractmethod
    async def insert_many(self, docs: Sequence[Dict[str, Any]]) -> List[str]:
        """Insert documents shaped like {data, used, assignedTo?, createdBy?, createdAt?}.

        Returns the new identifiers in insertion order.
        """

    @abstractmethod
    async def find_candidate(
        self,
        exclude_user: Optional[str] = None,
        policy: SelectionPolicy = SelectionPolicy.FIRST,
    ) -> Optional[StoredItem]:
        """Return one item with used == false.

        When exclude_user is given, items whose assignedTo equals it are skipped;
        items with no assignedTo are still candidates.
        """

    @abstractmethod
    async def assign(self, item_id: str, user_id: str) -> None:
        """Set used=true and assignedTo=user_id on a single item."""

    @abstractmethod
    async def reset_all(self) -> int:
        """Set used=false and clear assignedTo on every item. Returns items touched."""

    @abstractmethod
    async def mark_all_used(self) -> int:
        """Set used=true on every unused item. Returns the modified count."""

    @abstractmethod
    async def delete_by_creator(self, user_id: str) -> int:
        """Delete every item whose createdBy equals user_id. Returns the deleted count."""

    @abstractmethod
    async def list_items(self) -> List[StoredItem]:
        """Return every item in store order."""


class ItemStore(ABC):
    """Connection-owning factory of ItemCollection handles."""

    @abstractmethod
    async def connect(self) -> None:
        """Acquire the underlying connection."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the connection. Safe to call more than once."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Report connectivity without touching the backend."""

    @abstractmethod
    def get_collection(self, name: str) -> ItemCollection:
        """Return a handle for the named collection.

        Raises:
            NotConnected: connect() has not completed.
        """

    async def ping(self) -> bool:
        """Best-effort connectivity probe used by the health endpoint."""
        return self.is_connected()


def new_item_document(
    data: Dict[str, Any],
    created_by: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build the document inserted for a fresh, unassigned item."""
    doc: Dict[str, Any] = {"data": copy.deepcopy(dict(data)), "used": False}
    if created_by is not None:
        doc["createdBy"] = created_by
    if created_at is not None:
        doc["createdAt"] = created_at
    return doc
