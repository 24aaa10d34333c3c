"""Invoice domain models.

Amounts are Decimal. Payment state (paid_amount, balance, payment_status,
paid_date) is derived from payments and dates on every load and save.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from core.models.line_item import LineItem
from core.models.types import UTCDatetime
from core.permissions import FieldPermissions

DEFAULT_INVOICE_TERMS = (
    "Payment due within 30 days. Late payments subject to interest charges."
)
DEFAULT_PAYMENT_TERMS_DAYS = 30


class PaymentStatus(str, Enum):
    """Derived payment state. OVERDUE overlays unpaid/partial past due_date."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(str, Enum):
    CASH = "cash"
    EFT = "eft"
    CARD = "card"
    CREDIT = "credit"
    OTHER = "other"


class BankDetails(BaseModel):
    bank_name: str | None = None
    account_number: str | None = None
    account_holder: str | None = None
    branch_code: str | None = None


class PaymentCreate(BaseModel):
    """A payment as reported by the caller. Amount is range-checked by the service."""

    amount: Decimal
    method: PaymentMethod
    date: UTCDatetime | None = None
    reference: str | None = None
    notes: str | None = None


class Payment(BaseModel):
    """Recorded payment. Append-only."""

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod
    date: UTCDatetime
    reference: str | None = None
    notes: str | None = None
    recorded_by: UUID


class InvoiceCreate(BaseModel):
    """Data required to invoice a completed service call."""

    service_call: UUID
    customer: UUID
    invoice_number: str | None = Field(None, max_length=50)
    quotation: UUID | None = None
    site_id: UUID | None = None
    equipment: UUID | None = None
    title: str | None = None
    description: str | None = None
    service_type: str | None = None
    service_date: UTCDatetime | None = None
    issue_date: UTCDatetime | None = None
    due_date: UTCDatetime | None = None
    line_items: list[LineItem] = Field(..., min_length=1)
    labor_cost: Decimal = Field(Decimal("0"), ge=0)
    parts_cost: Decimal = Field(Decimal("0"), ge=0)
    vat_rate: Decimal = Field(Decimal("15"), ge=0, le=100)
    payment_terms: int = Field(DEFAULT_PAYMENT_TERMS_DAYS, ge=0, le=365)
    bank_details: BankDetails | None = None
    notes: str | None = None
    terms: str = DEFAULT_INVOICE_TERMS


class Invoice(BaseModel):
    """Full invoice entity as stored."""

    id: UUID
    created_by: UUID
    invoice_number: str
    service_call: UUID
    customer: UUID
    quotation: UUID | None = None
    site_id: UUID | None = None
    equipment: UUID | None = None
    title: str | None = None
    description: str | None = None
    service_type: str | None = None
    service_date: UTCDatetime | None = None
    issue_date: UTCDatetime
    due_date: UTCDatetime
    line_items: list[LineItem] = Field(default_factory=list)
    labor_cost: Decimal = Decimal("0")
    parts_cost: Decimal = Decimal("0")
    subtotal: Decimal = Decimal("0")
    vat_rate: Decimal = Field(Decimal("15"), ge=0, le=100)
    vat_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    payment_terms: int = DEFAULT_PAYMENT_TERMS_DAYS
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    paid_amount: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    payments: list[Payment] = Field(default_factory=list)
    paid_date: UTCDatetime | None = None
    bank_details: BankDetails | None = None
    notes: str | None = None
    terms: str = DEFAULT_INVOICE_TERMS
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


# Totals and payment state are derived, so they sit in neither set.
INVOICE_PERMISSIONS = FieldPermissions.declare(
    "invoice",
    immutable={"invoice_number", "service_call"},
    editable={
        "quotation",
        "customer",
        "site_id",
        "equipment",
        "title",
        "description",
        "service_type",
        "service_date",
        "issue_date",
        "due_date",
        "line_items",
        "labor_cost",
        "parts_cost",
        "vat_rate",
        "payment_terms",
        "bank_details",
        "notes",
        "terms",
    },
)


class OverdueInvoice(BaseModel):
    id: UUID
    invoice_number: str
    total_amount: Decimal
    balance: Decimal
    due_date: UTCDatetime
    days_overdue: int


class CustomerOverdue(BaseModel):
    """Overdue invoices of one customer."""

    customer: UUID
    customer_name: str | None = None
    total_overdue: Decimal = Decimal("0")
    invoices: list[OverdueInvoice] = Field(default_factory=list)


class OverdueSummary(BaseModel):
    total_overdue_invoices: int = 0
    total_overdue_amount: Decimal = Decimal("0")
    customers_with_overdue: int = 0
    overdue_by_customer: list[CustomerOverdue] = Field(default_factory=list)
