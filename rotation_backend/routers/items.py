from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse

from ..api.dependencies import get_event_generator, get_item_store, get_selection_policy
from ..core.errors import GenerationUnavailable, RotationServiceError, UnknownCollection
from ..core.logger import get_logger
from ..db.base import ItemStore, SelectionPolicy
from ..models.collections import COLLECTIONS, EVENTS, QUESTIONS, CollectionConfig
from ..models.schemas import CreatedEvents, CreateEventsRequest, ItemResponse, UserRequest
from ..services.generation import EventGenerator, events_to_payloads
from ..services.lifecycle import (
    create_items,
    delete_items_by_user,
    mark_all_items_as_used,
    replace_user_items,
)
from ..services.rotation import acquire_item

logger = get_logger(__name__)
router = APIRouter(tags=["Items"])

_RESPONSES = {
    400: {"description": "Invalid request.", "model": ItemResponse},
    500: {"description": "Storage error.", "model": ItemResponse},
}


def _failure(status_code: int, error: str) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content={"success": False, "data": {"error": error}})


def _valid_user_id(user_id: Optional[str]) -> Optional[str]:
    if not isinstance(user_id, str) or not user_id.strip():
        return None
    return user_id


def _collection_config(name: str) -> CollectionConfig:
    config = COLLECTIONS.get(name)
    if config is None:
        raise UnknownCollection(name)
    return config


async def _acquire(store: ItemStore, config: CollectionConfig, user_id: Optional[str], policy: SelectionPolicy):
    uid = _valid_user_id(user_id)
    if uid is None:
        return _failure(400, "Invalid userId parameter")
    try:
        result = await acquire_item(store, config.name, uid, config.sample_payloads(), policy)
    except RotationServiceError as exc:
        logger.error("Acquire failed.", exc_info=exc, extra={"collection": config.name})
        return _failure(500, "Internal server error")
    return ItemResponse(success=result.success, data=result.data)


# PUBLIC_INTERFACE
@router.get(
    "/getEvent",
    response_model=ItemResponse,
    summary="Get an unused event",
    description="Assigns one event to the user; the pool is reset once every event has been handed out.",
    responses=_RESPONSES,
)
async def get_event(
    user_id: Optional[str] = Query(default=None, alias="userId", description="Requesting user id."),
    store: ItemStore = Depends(get_item_store),
    policy: SelectionPolicy = Depends(get_selection_policy),
):
    """Assign an unused event to the userId given in the query string."""
    return await _acquire(store, EVENTS, user_id, policy)


# PUBLIC_INTERFACE
@router.post("/getEvent", response_model=ItemResponse, summary="Get an unused event (JSON body)", responses=_RESPONSES)
async def post_get_event(
    body: Optional[UserRequest] = None,
    store: ItemStore = Depends(get_item_store),
    policy: SelectionPolicy = Depends(get_selection_policy),
):
    """Same as GET /getEvent with userId read from the JSON body."""
    return await _acquire(store, EVENTS, body.user_id if body else None, policy)


# PUBLIC_INTERFACE
@router.get(
    "/getQuestion",
    response_model=ItemResponse,
    summary="Get an unused question",
    description="Assigns one question to the user; the pool is reset once every question has been handed out.",
    responses=_RESPONSES,
)
async def get_question(
    user_id: Optional[str] = Query(default=None, alias="userId", description="Requesting user id."),
    store: ItemStore = Depends(get_item_store),
    policy: SelectionPolicy = Depends(get_selection_policy),
):
    """Assign an unused question to the userId given in the query string."""
    return await _acquire(store, QUESTIONS, user_id, policy)


# PUBLIC_INTERFACE
@router.post(
    "/getQuestion", response_model=ItemResponse, summary="Get an unused question (JSON body)", responses=_RESPONSES
)
async def post_get_question(
    body: Optional[UserRequest] = None,
    store: ItemStore = Depends(get_item_store),
    policy: SelectionPolicy = Depends(get_selection_policy),
):
    """Same as GET /getQuestion with userId read from the JSON body."""
    return await _acquire(store, QUESTIONS, body.user_id if body else None, policy)


# PUBLIC_INTERFACE
@router.post(
    "/createEvents",
    response_model=ItemResponse,
    summary="Create events using AI",
    description=(
        "Generates events from the message and stores them as created by the user. "
        "With replaceExisting the user's previously created events are deleted first; "
        "that deletion is not undone if storing the new batch fails."
    ),
    responses={**_RESPONSES, 503: {"description": "Event generation unavailable.", "model": ItemResponse}},
)
async def create_events(
    req: CreateEventsRequest,
    store: ItemStore = Depends(get_item_store),
    generator: EventGenerator = Depends(get_event_generator),
):
    """
    Generate events from the user message and store them as created by that user.
    Returns 503 when the generator is not configured or produced nothing usable.
    """
    try:
        generated = await generator.generate_events(req.message, req.min_events, req.max_events)
    except GenerationUnavailable as exc:
        logger.warning("Event generation unavailable.", extra={"error": str(exc)})
        return _failure(503, "Event generation unavailable")
    if not generated.success:
        return _failure(503, generated.error or "Event generation unavailable")

    payloads = events_to_payloads(generated.data)
    try:
        if req.replace_existing:
            created = await replace_user_items(store, EVENTS.name, req.user_id, payloads)
            deleted = created.deleted_count
        else:
            created = await create_items(store, EVENTS.name, req.user_id, payloads)
            deleted = 0
    except RotationServiceError as exc:
        logger.error("Failed to store generated events.", exc_info=exc, extra={"user_id": req.user_id})
        return _failure(500, "Internal server error")

    data = CreatedEvents(
        user_message=req.message,
        events=payloads,
        inserted_count=created.inserted_count,
        inserted_ids=created.inserted_ids,
        deleted_count=deleted,
    )
    return ItemResponse(success=True, data=data.model_dump(by_alias=True))


# PUBLIC_INTERFACE
@router.post(
    "/items/{collection}/markAllUsed",
    response_model=ItemResponse,
    summary="Mark every item of a collection as used",
    responses={**_RESPONSES, 404: {"description": "Unknown collection.", "model": ItemResponse}},
)
async def mark_all_used(collection: str, store: ItemStore = Depends(get_item_store)):
    """Mark every unused item of the collection as used; the next acquire resets the pool."""
    config = _collection_config(collection)
    try:
        modified = await mark_all_items_as_used(store, config.name)
    except RotationServiceError as exc:
        logger.error("markAllUsed failed.", exc_info=exc, extra={"collection": config.name})
        return _failure(500, "Internal server error")
    return ItemResponse(success=True, data={"modifiedCount": modified})


# PUBLIC_INTERFACE
@router.delete(
    "/items/{collection}",
    response_model=ItemResponse,
    summary="Delete every item a user created",
    responses={**_RESPONSES, 404: {"description": "Unknown collection.", "model": ItemResponse}},
)
async def delete_user_items(
    collection: str,
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: ItemStore = Depends(get_item_store),
):
    """Delete the items of the collection created by userId."""
    config = _collection_config(collection)
    uid = _valid_user_id(user_id)
    if uid is None:
        return _failure(400, "Invalid userId parameter")
    try:
        deleted = await delete_items_by_user(store, config.name, uid)
    except RotationServiceError as exc:
        logger.error("Delete by user failed.", exc_info=exc, extra={"collection": config.name})
        return _failure(500, "Internal server error")
    return ItemResponse(success=True, data={"deletedCount": deleted})
