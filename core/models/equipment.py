"""Equipment (serviced asset) domain models."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from core.models.types import UTCDatetime
from core.permissions import FieldPermissions


class EquipmentType(str, Enum):
    """Catalogue of serviceable equipment. OTHER requires custom_type."""

    # HVAC / refrigeration
    COLD_ROOM = "Cold Room"
    FREEZER = "Freezer"
    AC_UNIT = "AC Unit"
    DEEP_FRYER = "Deep Fryer"
    ICE_MACHINE = "Ice Machine"
    DISPLAY_COOLER = "Display Cooler"
    WALK_IN_FREEZER = "Walk-in Freezer"
    # Electrical
    GENERATOR = "Generator"
    DISTRIBUTION_BOARD = "Distribution Board"
    EMERGENCY_POWER_SYSTEM = "Emergency Power System"
    UPS = "UPS"
    SOLAR_SYSTEM = "Solar System"
    # Plumbing
    HOT_WATER_SYSTEM = "Hot Water System"
    GEYSER = "Geyser"
    BOILER = "Boiler"
    WATER_HEATER = "Water Heater"
    PUMP = "Pump"
    # Mechanical
    WELDING_EQUIPMENT = "Welding Equipment"
    COMPRESSOR = "Compressor"
    OTHER = "Other"


class EquipmentStatus(str, Enum):
    OPERATIONAL = "operational"
    NEEDS_SERVICE = "needs-service"
    UNDER_REPAIR = "under-repair"
    OUT_OF_ORDER = "out-of-order"
    DECOMMISSIONED = "decommissioned"


class WarrantyState(str, Enum):
    """Derived from warranty_expiry relative to now."""

    UNDER_WARRANTY = "under_warranty"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    NO_WARRANTY = "no_warranty"


def _check_custom_type(equipment_type, custom_type):
    if equipment_type == EquipmentType.OTHER and not custom_type:
        raise ValueError("custom_type is required when equipment_type is 'Other'")


class EquipmentCreate(BaseModel):
    """Data required to register equipment."""

    customer: UUID
    equipment_id: str | None = Field(None, max_length=50)
    site_id: UUID | None = None
    equipment_type: EquipmentType
    custom_type: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    installation_date: UTCDatetime | None = None
    warranty_expiry: UTCDatetime | None = None
    last_service_date: UTCDatetime | None = None
    next_service_date: UTCDatetime | None = None
    status: EquipmentStatus = EquipmentStatus.OPERATIONAL
    location: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def check_custom_type(self):
        _check_custom_type(self.equipment_type, self.custom_type)
        return self


class Equipment(BaseModel):
    """Full equipment entity as stored."""

    id: UUID
    created_by: UUID
    equipment_id: str
    customer: UUID
    site_id: UUID | None = None
    equipment_type: EquipmentType
    custom_type: str | None = None
    brand: str | None = None
    model: str | None = None
    serial_number: str | None = None
    installation_date: UTCDatetime | None = None
    warranty_expiry: UTCDatetime | None = None
    last_service_date: UTCDatetime | None = None
    next_service_date: UTCDatetime | None = None
    status: EquipmentStatus = EquipmentStatus.OPERATIONAL
    location: str | None = None
    service_history: list[UUID] = Field(default_factory=list)
    notes: str | None = None
    created_at: UTCDatetime
    updated_at: UTCDatetime

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def check_custom_type(self):
        _check_custom_type(self.equipment_type, self.custom_type)
        return self

    @property
    def type_label(self) -> str:
        if self.equipment_type == EquipmentType.OTHER:
            return self.custom_type or EquipmentType.OTHER.value
        return self.equipment_type.value


# service_history is appended by service call creation only
EQUIPMENT_PERMISSIONS = FieldPermissions.declare(
    "equipment",
    immutable={"equipment_id"},
    editable={
        "customer",
        "site_id",
        "equipment_type",
        "custom_type",
        "brand",
        "model",
        "serial_number",
        "installation_date",
        "warranty_expiry",
        "last_service_date",
        "next_service_date",
        "status",
        "location",
        "notes",
    },
)


class WarrantySummary(BaseModel):
    """Warranty position across a principal's equipment.

    under_warranty counts everything not yet expired, expiring_soon included.
    """

    total: int = 0
    under_warranty: int = 0
    expiring_soon: int = 0
    expired: int = 0
    no_warranty: int = 0
    expiring_soon_equipment: list[Equipment] = Field(default_factory=list)
    expired_equipment: list[Equipment] = Field(default_factory=list)
