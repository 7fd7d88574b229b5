"""
Event Pydantic Schemas

Schemas:
- EventCreate: Create a new event (organizers and admins)
- EventUpdate: Partial update
- EventResponse: Event data, with its rating summary when one exists
- EventListResponse: Paginated list of events
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.review import EventRatingSummary


class EventBase(BaseModel):
    """Shared event fields."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Event name",
        examples=["PyCon Lisbon 2025"],
    )

    description: str | None = Field(
        default=None,
        max_length=10000,
        description="Event description",
    )

    location: str | None = Field(
        default=None,
        max_length=255,
        description="Venue or address",
        examples=["Centro de Congressos de Lisboa"],
    )

    start_time: datetime = Field(..., description="When the event starts")
    end_time: datetime | None = Field(default=None, description="When the event ends")

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Event name must not be blank")
        return v


class EventCreate(EventBase):
    """
    Schema for creating an event.

    Example request body:
    {
        "name": "Jazz Night",
        "location": "Blue Note",
        "start_time": "2025-06-01T20:00:00Z"
    }
    """

    @model_validator(mode="after")
    def end_after_start(self) -> "EventCreate":
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    """Schema for updating an event. All fields optional."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    location: str | None = Field(default=None, max_length=255)
    start_time: datetime | None = None
    end_time: datetime | None = None


class EventResponse(EventBase):
    """Event data returned by the API."""

    id: int = Field(..., description="Unique event identifier")
    organizer_id: int = Field(..., description="ID of the organizing user")
    created_at: datetime
    updated_at: datetime

    rating: EventRatingSummary | None = Field(
        default=None,
        description="Aggregate rating (absent until the first recalculation)",
    )

    model_config = ConfigDict(from_attributes=True)


class EventListResponse(BaseModel):
    """Paginated list of events."""

    items: list[EventResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    pages: int = Field(..., ge=0)
