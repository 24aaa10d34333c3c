"""Service call (work order) domain models."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.line_item import LineItem
from core.models.types import UTCDatetime
from core.permissions import FieldPermissions


class ServiceCallStatus(str, Enum):
    """
    Work order lifecycle status.

    Legal moves between these are listed in core.lifecycle.
    """

    PENDING = "pending"
    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVOICED = "invoiced"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ServiceCallCreate(BaseModel):
    """Data required to open a service call."""

    customer: UUID
    call_number: str | None = Field(None, max_length=50)
    site_id: UUID | None = None
    assigned_agent: UUID | None = None
    equipment: UUID | None = None
    quotation: UUID | None = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    service_type: str = Field(..., min_length=1)
    priority: Priority = Priority.MEDIUM
    status: ServiceCallStatus = ServiceCallStatus.OPEN
    scheduled_date: UTCDatetime | None = None
    estimated_duration: int | None = Field(None, ge=0)  # minutes
    service_location: str | None = None
    notes: str | None = None
    internal_notes: str | None = None
    parts_used: list[LineItem] = Field(default_factory=list)


class RatingSubmission(BaseModel):
    """Customer rating of a finished job."""

    rating: int = Field(..., ge=1, le=5)
    customer_feedback: str | None = Field(None, max_length=2000)


class ServiceCall(BaseModel):
    """Full service call entity as stored."""

    id: UUID
    created_by: UUID
    call_number: str
    customer: UUID
    site_id: UUID | None = None
    assigned_agent: UUID | None = None
    equipment: UUID | None = None
    quotation: UUID | None = None
    invoice: UUID | None = None
    title: str
    description: str
    service_type: str
    priority: Priority = Priority.MEDIUM
    status: ServiceCallStatus = ServiceCallStatus.OPEN
    scheduled_date: UTCDatetime | None = None
    completed_date: UTCDatetime | None = None
    invoiced_date: UTCDatetime | None = None
    estimated_duration: int | None = Field(None, ge=0)
    actual_duration: int | None = Field(None, ge=0)
    service_location: str | None = None
    notes: str | None = None
    internal_notes: str | None = None
    parts_used: list[LineItem] = Field(default_factory=list)
    parts_cost: Decimal = Decimal("0")
    before_photos: list[str] = Field(default_factory=list)
    after_photos: list[str] = Field(default_factory=list)
    rating: int | None = Field(None, ge=1, le=5)
    customer_feedback: str | None = None
    rated_date: UTCDatetime | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @property
    def is_rated(self) -> bool:
        return self.rating is not None


# completed_date, invoice links, photos and rating are maintained by
# dedicated operations and are deliberately absent from both sets.
SERVICE_CALL_PERMISSIONS = FieldPermissions.declare(
    "service_call",
    immutable={"call_number"},
    editable={
        "customer",
        "site_id",
        "assigned_agent",
        "equipment",
        "title",
        "description",
        "priority",
        "status",
        "service_type",
        "scheduled_date",
        "estimated_duration",
        "actual_duration",
        "service_location",
        "notes",
        "internal_notes",
        "parts_used",
    },
)
