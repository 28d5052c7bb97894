"""
Pydantic schemas for API requests and responses and for the two item payload
shapes (events and questions).

Payload shapes are enforced here, at the HTTP and generation boundary only; the
rotation engine stores and returns payloads as plain dicts.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EventType = Literal["chance", "community_chest", "trade", "auction", "property", "system"]


def _require_text(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid {field_name} parameter")
    return value.strip()


# ---------------------------------------------------------------------------
# Item payloads
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class EventData(BaseModel):
    """Payload of an event item."""
    message: str = Field(..., min_length=1, description="Text shown to the player.")
    type: EventType = Field(default="system", description="Event category tag.")
    amount: Optional[Union[int, float]] = Field(default=None, description="Monetary amount after variation.")
    property: Optional[str] = Field(default=None, description="Property the event refers to, if any.")
    base_amount: Optional[Union[int, float]] = Field(
        default=None, alias="baseAmount", description="Original amount before random variation."
    )

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {"message": "Pay luxury tax", "type": "chance", "amount": 2400, "baseAmount": 2000}
        },
    )

    def to_payload(self) -> Dict[str, Any]:
        """Render as the stored payload dict (camelCase keys, unset fields omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# PUBLIC_INTERFACE
class QuestionData(BaseModel):
    """Payload of a question item."""
    message: str = Field(..., min_length=1)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class UserRequest(BaseModel):
    """Body of the getEvent/getQuestion POST variants."""
    user_id: Optional[str] = Field(default=None, alias="userId", description="Opaque client-supplied user id.")

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={"example": {"userId": "alice"}})


# PUBLIC_INTERFACE
class CreateEventsRequest(BaseModel):
    """Request to generate events from free text and store them for the user."""
    user_id: str = Field(..., alias="userId")
    message: str = Field(..., description="Free-text prompt the events are generated from.")
    replace_existing: bool = Field(
        default=False,
        alias="replaceExisting",
        description="Delete every event this user created before inserting the new batch.",
    )
    min_events: Optional[int] = Field(default=None, alias="minEvents", ge=1, le=50)
    max_events: Optional[int] = Field(default=None, alias="maxEvents", ge=1, le=50)

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"userId": "bob", "message": "A rainy day in the city"}},
    )

    @field_validator("user_id")
    @classmethod
    def _user_id_not_blank(cls, v: str) -> str:
        return _require_text(v, "userId")

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, v: str) -> str:
        return _require_text(v, "message")

    @model_validator(mode="after")
    def _range_ordered(self) -> "CreateEventsRequest":
        if self.min_events is not None and self.max_events is not None and self.min_events > self.max_events:
            raise ValueError("minEvents must not exceed maxEvents")
        return self


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

# PUBLIC_INTERFACE
class ItemResponse(BaseModel):
    """Uniform {success, data} envelope used by every item endpoint."""
    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)


# PUBLIC_INTERFACE
class CreatedEvents(BaseModel):
    """Data section of a successful createEvents response."""
    user_message: str = Field(..., alias="userMessage")
    events: List[Dict[str, Any]] = Field(default_factory=list)
    inserted_count: int = Field(..., alias="insertedCount")
    inserted_ids: List[str] = Field(default_factory=list, alias="insertedIds")
    deleted_count: int = Field(default=0, alias="deletedCount")

    model_config = ConfigDict(populate_by_name=True)


# PUBLIC_INTERFACE
class HealthResponse(BaseModel):
    """Basic health response schema."""
    status: str = Field(..., description="Health status message, e.g., 'ok'")
    database: Optional[str] = Field(default=None, description="'connected' or 'disconnected' when checked.")
