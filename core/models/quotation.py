"""Quotation (priced estimate) domain models."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.line_item import LineItem
from core.models.service_call import Priority
from core.models.types import UTCDatetime
from core.permissions import FieldPermissions

DEFAULT_QUOTATION_TERMS = (
    "Payment due within 30 days. Quotation valid for 30 days from date of issue."
)


class QuotationStatus(str, Enum):
    """
    Quotation lifecycle status.

    CONVERTED is reachable only through conversion to a service call.
    """

    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"


class QuotationCreate(BaseModel):
    """Data required to create a quotation."""

    customer: UUID
    quotation_number: str | None = Field(None, max_length=50)
    site_id: UUID | None = None
    equipment: UUID | None = None
    service_type: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    line_items: list[LineItem] = Field(..., min_length=1)
    vat_rate: Decimal = Field(Decimal("15"), ge=0, le=100)
    valid_until: UTCDatetime | None = None
    notes: str | None = None
    internal_notes: str | None = None
    terms: str = DEFAULT_QUOTATION_TERMS


class QuotationConversion(BaseModel):
    """Options for turning an approved quotation into a service call."""

    assigned_agent: UUID | None = None
    scheduled_date: UTCDatetime | None = None
    priority: Priority = Priority.MEDIUM


class Quotation(BaseModel):
    """Full quotation entity as stored."""

    id: UUID
    created_by: UUID
    quotation_number: str
    customer: UUID
    site_id: UUID | None = None
    equipment: UUID | None = None
    service_type: str
    title: str
    description: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    vat_rate: Decimal = Field(Decimal("15"), ge=0, le=100)
    vat_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    valid_until: UTCDatetime
    status: QuotationStatus = QuotationStatus.DRAFT
    sent_date: UTCDatetime | None = None
    approved_date: UTCDatetime | None = None
    rejected_date: UTCDatetime | None = None
    rejection_reason: str | None = None
    converted_to_service_call: UUID | None = None
    converted_date: UTCDatetime | None = None
    notes: str | None = None
    internal_notes: str | None = None
    terms: str = DEFAULT_QUOTATION_TERMS
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @property
    def is_converted(self) -> bool:
        return self.status == QuotationStatus.CONVERTED


# Totals, status, status dates and conversion links are derived and
# maintained by the service, so they sit in neither set.
QUOTATION_PERMISSIONS = FieldPermissions.declare(
    "quotation",
    immutable={"quotation_number"},
    editable={
        "customer",
        "site_id",
        "equipment",
        "service_type",
        "title",
        "description",
        "line_items",
        "vat_rate",
        "valid_until",
        "rejection_reason",
        "notes",
        "internal_notes",
        "terms",
    },
)
