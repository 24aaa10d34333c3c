"""Customer domain models.

Business customers are served at one or more sites; residential customers
are served at their physical address and have no sites.
"""

from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, EmailStr, Field, model_validator

from core.models.types import UTCDatetime
from core.permissions import FieldPermissions


class CustomerType(str, Enum):
    BUSINESS = "business"
    RESIDENTIAL = "residential"


class AccountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class SiteStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class MaintenanceManager(BaseModel):
    """Central maintenance contact for a business customer."""

    name: str | None = None
    phone: str | None = None
    email: EmailStr | None = None


class SiteCreate(BaseModel):
    """Data required to add a site."""

    site_name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    contact_person: str | None = None
    contact_phone: str | None = None
    contact_email: EmailStr | None = None
    service_types: list[str] = Field(default_factory=list)
    status: SiteStatus = SiteStatus.ACTIVE
    notes: str | None = None


class Site(SiteCreate):
    """A service location of a business customer."""

    id: UUID = Field(default_factory=uuid4)


def _check_customer_shape(customer_type, business_name, physical_address, sites):
    if customer_type == CustomerType.BUSINESS:
        if not business_name:
            raise ValueError("Business customers require business_name")
        if not sites:
            raise ValueError("Business customers must have at least one site")
    elif not physical_address:
        raise ValueError("Residential customers require physical_address")


class CustomerCreate(BaseModel):
    """Data required to create a customer."""

    customer_type: CustomerType = CustomerType.RESIDENTIAL
    customer_id: str = Field(..., min_length=1, max_length=50)
    business_name: str | None = None
    contact_first_name: str = Field(..., min_length=1)
    contact_last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone_number: str = Field(..., min_length=1)
    alternate_phone: str | None = None
    physical_address: str | None = None
    billing_address: str | None = None
    vat_number: str | None = None
    tax_number: str | None = None
    registration_number: str | None = None
    sites: list[Site] = Field(default_factory=list)
    maintenance_manager: MaintenanceManager | None = None
    account_status: AccountStatus = AccountStatus.ACTIVE
    notes: str | None = None

    @model_validator(mode="after")
    def check_type_requirements(self):
        _check_customer_shape(
            self.customer_type, self.business_name, self.physical_address, self.sites
        )
        return self


class Customer(BaseModel):
    """Full customer entity as stored."""

    id: UUID
    created_by: UUID
    customer_type: CustomerType
    customer_id: str
    business_name: str | None = None
    contact_first_name: str
    contact_last_name: str
    email: EmailStr
    phone_number: str
    alternate_phone: str | None = None
    physical_address: str | None = None
    billing_address: str | None = None
    vat_number: str | None = None
    tax_number: str | None = None
    registration_number: str | None = None
    sites: list[Site] = Field(default_factory=list)
    maintenance_manager: MaintenanceManager | None = None
    account_status: AccountStatus = AccountStatus.ACTIVE
    notes: str | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def check_type_requirements(self):
        _check_customer_shape(
            self.customer_type, self.business_name, self.physical_address, self.sites
        )
        return self

    @property
    def display_name(self) -> str:
        if self.business_name:
            return self.business_name
        return f"{self.contact_first_name} {self.contact_last_name}"

    def find_site(self, site_id: UUID) -> Site | None:
        for site in self.sites:
            if site.id == site_id:
                return site
        return None


CUSTOMER_PERMISSIONS = FieldPermissions.declare(
    "customer",
    immutable={"business_name", "customer_id", "customer_type"},
    editable={
        "contact_first_name",
        "contact_last_name",
        "email",
        "phone_number",
        "alternate_phone",
        "physical_address",
        "billing_address",
        "vat_number",
        "tax_number",
        "registration_number",
        "sites",
        "maintenance_manager",
        "account_status",
        "notes",
    },
)
