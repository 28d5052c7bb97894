"""
Dependency wiring for the FastAPI app.

The item store and the event generator are created in the application lifespan
and kept on app.state; handlers receive them through these accessors.
"""

from fastapi import HTTPException, Request

from ..core.config import get_settings
from ..db.base import ItemStore, SelectionPolicy
from ..services.generation import EventGenerator


# PUBLIC_INTERFACE
def get_item_store(request: Request) -> ItemStore:
    """Return the store connected during startup."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Item store not initialized")
    return store


# PUBLIC_INTERFACE
def get_event_generator(request: Request) -> EventGenerator:
    """Return the injected event generator (possibly uninitialized)."""
    generator = getattr(request.app.state, "generator", None)
    if generator is None:
        return EventGenerator()
    return generator


# PUBLIC_INTERFACE
def get_selection_policy(request: Request) -> SelectionPolicy:
    """Return the selection policy chosen at startup, falling back to settings."""
    policy = getattr(request.app.state, "selection_policy", None)
    if policy is None:
        policy = SelectionPolicy(get_settings().ROTATION_SELECTION)
    return policy
