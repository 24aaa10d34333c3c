"""Core domain models."""

from core.models.line_item import LineItem
from core.models.user import User, UserCreate, USER_PERMISSIONS
from core.models.agent import (
    Agent, AgentCreate, AgentStatus, Availability, Location, AGENT_PERMISSIONS,
)
from core.models.customer import (
    Customer, CustomerCreate, CustomerType, AccountStatus,
    Site, SiteCreate, SiteStatus, MaintenanceManager, CUSTOMER_PERMISSIONS,
)
from core.models.service_call import (
    ServiceCall, ServiceCallCreate, ServiceCallStatus, Priority,
    RatingSubmission, SERVICE_CALL_PERMISSIONS,
)
from core.models.equipment import (
    Equipment, EquipmentCreate, EquipmentType, EquipmentStatus,
    WarrantyState, WarrantySummary, EQUIPMENT_PERMISSIONS,
)
from core.models.quotation import (
    Quotation, QuotationCreate, QuotationStatus, QuotationConversion,
    QUOTATION_PERMISSIONS,
)
from core.models.invoice import (
    Invoice, InvoiceCreate, PaymentStatus, PaymentMethod, Payment,
    PaymentCreate, BankDetails, OverdueInvoice, CustomerOverdue, OverdueSummary,
    INVOICE_PERMISSIONS,
)

__all__ = [
    # Shared
    "LineItem",
    # User
    "User", "UserCreate", "USER_PERMISSIONS",
    # Agent
    "Agent", "AgentCreate", "AgentStatus", "Availability", "Location", "AGENT_PERMISSIONS",
    # Customer
    "Customer", "CustomerCreate", "CustomerType", "AccountStatus",
    "Site", "SiteCreate", "SiteStatus", "MaintenanceManager", "CUSTOMER_PERMISSIONS",
    # ServiceCall
    "ServiceCall", "ServiceCallCreate", "ServiceCallStatus", "Priority",
    "RatingSubmission", "SERVICE_CALL_PERMISSIONS",
    # Equipment
    "Equipment", "EquipmentCreate", "EquipmentType", "EquipmentStatus",
    "WarrantyState", "WarrantySummary", "EQUIPMENT_PERMISSIONS",
    # Quotation
    "Quotation", "QuotationCreate", "QuotationStatus", "QuotationConversion",
    "QUOTATION_PERMISSIONS",
    # Invoice
    "Invoice", "InvoiceCreate", "PaymentStatus", "PaymentMethod", "Payment",
    "PaymentCreate", "BankDetails", "OverdueInvoice", "CustomerOverdue", "OverdueSummary",
    "INVOICE_PERMISSIONS",
]
