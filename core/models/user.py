"""Business account (super user) models."""

from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from core.models.types import UTCDatetime
from core.permissions import FieldPermissions

PASSWORD_MIN_LENGTH = 6


class UserCreate(BaseModel):
    """Registration payload."""

    user_name: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    business_name: str = Field(..., min_length=1)
    business_registration_number: str = Field(..., min_length=1)
    tax_number: str = Field(..., min_length=1)
    vat_number: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    physical_address: str = Field(..., min_length=1)
    website_address: str = ""


class User(BaseModel):
    """Full account as stored. password_hash never leaves the service layer."""

    id: UUID
    user_name: str
    email: EmailStr
    password_hash: str
    business_name: str
    business_registration_number: str
    tax_number: str
    vat_number: str
    phone_number: str
    physical_address: str
    website_address: str = ""
    is_super_user: bool = True
    is_active: bool = True
    last_login_at: UTCDatetime | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    def public(self) -> dict:
        """JSON view without the credential."""
        return self.model_dump(mode="json", exclude={"password_hash"})


USER_PERMISSIONS = FieldPermissions.declare(
    "user",
    immutable={
        "user_name",
        "business_name",
        "business_registration_number",
        "is_super_user",
    },
    editable={
        "email",
        "password",
        "tax_number",
        "vat_number",
        "phone_number",
        "physical_address",
        "website_address",
        "is_active",
    },
    owned=False,
)
