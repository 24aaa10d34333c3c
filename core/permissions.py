"""
Field-level mutation permissions.

Each entity type declares which of its fields are fixed after creation and
which a caller may change. apply_patch() enforces that contract the same
way for every entity:

- a patch value for an immutable field that differs from the stored value
  rejects the whole patch, naming every offending field;
- the same value for an immutable field is accepted (no false positives);
- editable fields present in the patch are applied;
- fields in neither set are ignored.

Comparison is type-agnostic: stored documents hold JSON strings while a
patch may carry UUIDs, enums, datetimes or numbers, so both sides are
normalized to a canonical text form before comparing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from core.exceptions import ImmutableFieldError
from utils.timezone import parse_iso, to_utc

logger = logging.getLogger(__name__)

# Always fixed after creation, for every owned record
BASE_IMMUTABLE = frozenset({"id", "created_at", "created_by"})


@dataclass(frozen=True)
class FieldPermissions:
    """Immutable/editable field declaration for one entity type."""

    entity_type: str
    immutable: frozenset[str]
    editable: frozenset[str]

    def __post_init__(self):
        overlap = self.immutable & self.editable
        if overlap:
            raise ValueError(
                f"{self.entity_type} fields cannot be both immutable and editable: "
                f"{', '.join(sorted(overlap))}"
            )

    @classmethod
    def declare(
        cls,
        entity_type: str,
        immutable: set[str],
        editable: set[str],
        owned: bool = True,
    ) -> "FieldPermissions":
        base = BASE_IMMUTABLE if owned else BASE_IMMUTABLE - {"created_by"}
        return cls(entity_type, frozenset(base | immutable), frozenset(editable))

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "immutable_fields": sorted(self.immutable),
            "editable_fields": sorted(self.editable),
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _as_decimal(value: Any) -> Decimal | None:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _canonical(value: Any) -> Any:
    """Reduce a scalar to a comparable text form."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return _canonical(value.value)
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.isoformat()
        return to_utc(value).isoformat()
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-" and value[7:8] == "-":
        try:
            return parse_iso(value).isoformat()
        except ValueError:
            return value
    return str(value)


def _equivalent(stored: Any, incoming: Any) -> bool:
    if isinstance(stored, dict) and isinstance(incoming, dict):
        return stored.keys() == incoming.keys() and all(
            _equivalent(stored[k], incoming[k]) for k in stored
        )
    if isinstance(stored, (list, tuple)) and isinstance(incoming, (list, tuple)):
        return len(stored) == len(incoming) and all(
            _equivalent(a, b) for a, b in zip(stored, incoming)
        )
    if _is_number(stored) or _is_number(incoming):
        # Stored money is a JSON string ("250.00"), patches may send 250
        a, b = _as_decimal(stored), _as_decimal(incoming)
        if a is not None and b is not None:
            return a == b
    return _canonical(stored) == _canonical(incoming)


def values_differ(stored: Any, incoming: Any) -> bool:
    """Whether a patch value would change the stored value."""
    return not _equivalent(stored, incoming)


def protected_fields_in(
    permissions: FieldPermissions, current: dict[str, Any], patch: dict[str, Any]
) -> list[str]:
    """Immutable fields the patch would change, sorted."""
    return sorted(
        field for field in patch
        if field in permissions.immutable and values_differ(current.get(field), patch[field])
    )


def ignored_fields_in(permissions: FieldPermissions, patch: dict[str, Any]) -> list[str]:
    """Patch keys that are neither immutable nor editable."""
    return sorted(
        field for field in patch
        if field not in permissions.immutable and field not in permissions.editable
    )


def apply_patch(
    permissions: FieldPermissions,
    current: dict[str, Any],
    patch: dict[str, Any],
) -> dict[str, Any]:
    """
    Apply a caller's patch to a stored record.

    Args:
        permissions: Field declaration for the record's entity type
        current: Stored record as a JSON dict
        patch: Requested changes

    Returns:
        New dict: current with every editable patch field applied.
        current itself is not modified.

    Raises:
        ImmutableFieldError: If any immutable field would change.
            Nothing is applied in that case.
    """
    rejected = protected_fields_in(permissions, current, patch)
    if rejected:
        raise ImmutableFieldError(permissions.entity_type, rejected)

    ignored = ignored_fields_in(permissions, patch)
    if ignored:
        logger.warning(
            f"Ignoring non-editable {permissions.entity_type} fields: {', '.join(ignored)}"
        )

    merged = dict(current)
    for field, value in patch.items():
        if field in permissions.editable:
            merged[field] = value
    return merged
