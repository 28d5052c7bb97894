"""
In-process item store for development and tests.
"""

import copy
import random
import uuid
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import NotConnected
from .base import ItemCollection, ItemStore, SelectionPolicy, StoredItem


def _to_item(doc: Dict[str, Any]) -> StoredItem:
    return StoredItem(
        id=doc["_id"],
        data=copy.deepcopy(doc.get("data") or {}),
        used=bool(doc.get("used", False)),
        assigned_to=doc.get("assignedTo"),
        created_by=doc.get("createdBy"),
        created_at=doc.get("createdAt"),
    )


class InMemoryItemCollection(ItemCollection):
    """List-backed collection; list order is store order."""

    def __init__(self, name: str, docs: List[Dict[str, Any]]):
        super().__init__(name)
        self._docs = docs

    def _find(self, item_id: str) -> Optional[Dict[str, Any]]:
        for doc in self._docs:
            if doc["_id"] == item_id:
                return doc
        return None

    async def count(self) -> int:
        return len(self._docs)

    async def insert_many(self, docs: Sequence[Dict[str, Any]]) -> List[str]:
        ids = []
        for d in docs:
            doc = copy.deepcopy(dict(d))
            doc["data"] = doc.get("data") or {}
            doc["_id"] = uuid.uuid4().hex
            self._docs.append(doc)
            ids.append(doc["_id"])
        return ids

    async def find_candidate(
        self,
        exclude_user: Optional[str] = None,
        policy: SelectionPolicy = SelectionPolicy.FIRST,
    ) -> Optional[StoredItem]:
        matches = [
            d
            for d in self._docs
            if not d.get("used") and (exclude_user is None or d.get("assignedTo") != exclude_user)
        ]
        if not matches:
            return None
        doc = random.choice(matches) if policy == SelectionPolicy.RANDOM else matches[0]
        return _to_item(doc)

    async def assign(self, item_id: str, user_id: str) -> None:
        doc = self._find(item_id)
        if doc is not None:
            doc["used"] = True
            doc["assignedTo"] = user_id

    async def reset_all(self) -> int:
        for doc in self._docs:
            doc["used"] = False
            doc.pop("assignedTo", None)
        return len(self._docs)

    async def mark_all_used(self) -> int:
        modified = 0
        for doc in self._docs:
            if not doc.get("used"):
                doc["used"] = True
                modified += 1
        return modified

    async def delete_by_creator(self, user_id: str) -> int:
        before = len(self._docs)
        self._docs[:] = [d for d in self._docs if d.get("createdBy") != user_id]
        return before - len(self._docs)

    async def list_items(self) -> List[StoredItem]:
        return [_to_item(d) for d in self._docs]


# PUBLIC_INTERFACE
class InMemoryItemStore(ItemStore):
    """Simple in-memory item store; contents survive disconnect/connect cycles."""

    def __init__(self):
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def get_collection(self, name: str) -> InMemoryItemCollection:
        if not self._connected:
            raise NotConnected("In-memory store is not connected")
        return InMemoryItemCollection(name, self._collections.setdefault(name, []))

    def reset(self) -> None:
        """Drop every collection."""
        self._collections.clear()
