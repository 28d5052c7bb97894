"""
Known item collections and the sample data used to seed them when empty.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple


@dataclass(frozen=True)
class CollectionConfig:
    """A named collection and the payloads it is seeded with."""

    name: str
    sample_data: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    def sample_payloads(self) -> List[Dict[str, Any]]:
        """Return fresh copies so callers can never mutate the seed table."""
        return [dict(p) for p in self.sample_data]


EVENT_SAMPLE_DATA: Tuple[Dict[str, Any], ...] = (
    {"message": "Pay luxury tax", "type": "chance", "amount": 2400, "baseAmount": 2000},
    {
        "message": "Property auction",
        "type": "auction",
        "amount": 1600,
        "baseAmount": 2000,
        "property": "Park Place",
    },
    {"message": "Bank error in your favor", "type": "community_chest", "amount": 1200, "baseAmount": 1000},
)

QUESTION_SAMPLE_DATA: Tuple[Dict[str, Any], ...] = (
    {"message": "Question 1"},
    {"message": "Question 2"},
    {"message": "Question 3"},
)

EVENTS = CollectionConfig(name="events", sample_data=EVENT_SAMPLE_DATA)
QUESTIONS = CollectionConfig(name="questions", sample_data=QUESTION_SAMPLE_DATA)

# PUBLIC_INTERFACE
COLLECTIONS: Dict[str, CollectionConfig] = {
    EVENTS.name: EVENTS,
    QUESTIONS.name: QUESTIONS,
}
