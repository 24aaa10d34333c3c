"""Field service agent (technician) models."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from core.models.types import UTCDatetime
from core.permissions import FieldPermissions


class AgentStatus(str, Enum):
    """Employment status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "on-leave"


class Availability(str, Enum):
    """Whether the agent can take a job right now."""

    AVAILABLE = "available"
    BUSY = "busy"
    OFF_DUTY = "off-duty"


class Location(BaseModel):
    """Last reported position."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    updated_at: UTCDatetime | None = None


class AgentCreate(BaseModel):
    """Data required to register an agent."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    employee_id: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone_number: str = Field(..., min_length=1)
    skills: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)
    status: AgentStatus = AgentStatus.ACTIVE
    availability: Availability = Availability.AVAILABLE
    assigned_area: str | None = None
    vehicle_number: str | None = None
    hourly_rate: Decimal | None = Field(None, ge=0)
    notes: str | None = None


class Agent(BaseModel):
    """Full agent entity as stored."""

    id: UUID
    created_by: UUID
    first_name: str
    last_name: str
    employee_id: str
    email: EmailStr
    phone_number: str
    skills: list[str] = Field(default_factory=list)
    specializations: list[str] = Field(default_factory=list)
    status: AgentStatus = AgentStatus.ACTIVE
    availability: Availability = Availability.AVAILABLE
    location: Location | None = None
    assigned_area: str | None = None
    vehicle_number: str | None = None
    hourly_rate: Decimal | None = Field(None, ge=0)
    notes: str | None = None
    total_jobs_attended: int = Field(0, ge=0)
    average_rating: float = Field(0.0, ge=0, le=5)
    ratings_count: int = Field(0, ge=0)
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Performance counters are in neither set: only the service moves them
AGENT_PERMISSIONS = FieldPermissions.declare(
    "agent",
    immutable={"first_name", "last_name", "employee_id"},
    editable={
        "email",
        "phone_number",
        "skills",
        "specializations",
        "status",
        "availability",
        "location",
        "assigned_area",
        "vehicle_number",
        "hourly_rate",
        "notes",
    },
)
