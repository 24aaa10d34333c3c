"""
Line-item pricing for quotations, invoices and parts used on service calls.

All arithmetic is Decimal and nothing is rounded: 2 x 100 + 1 x 50 at 15%
VAT gives exactly 250 / 37.5 / 287.5.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from core.exceptions import InvalidInputError

DEFAULT_VAT_RATE = Decimal("15")

_REQUIRED = ("description", "quantity", "unit_price")


@dataclass(frozen=True)
class Totals:
    """Priced line items plus document totals."""

    line_items: list[dict[str, Any]] = field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")


def _decimal(value: Any, name: str, index: int) -> Decimal:
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError(f"Line item {index + 1}: {name} must be a number")
    if not number.is_finite():
        raise InvalidInputError(f"Line item {index + 1}: {name} must be a number")
    if number < 0:
        raise InvalidInputError(f"Line item {index + 1}: {name} cannot be negative")
    return number


def _as_mapping(item: Any) -> Mapping[str, Any]:
    if isinstance(item, Mapping):
        return item
    if hasattr(item, "model_dump"):
        return item.model_dump()
    raise InvalidInputError(f"Line item must be an object, got {type(item).__name__}")


def price_line(item: Any, index: int = 0) -> dict[str, Any]:
    """
    Validate one line and attach its total.

    Raises:
        InvalidInputError: Missing description/quantity/unit_price, or a
            negative or non-numeric amount
    """
    data = dict(_as_mapping(item))
    missing = [key for key in _REQUIRED if data.get(key) in (None, "")]
    if missing:
        raise InvalidInputError(
            f"Line item {index + 1} is missing: {', '.join(missing)}"
        )

    quantity = _decimal(data["quantity"], "quantity", index)
    unit_price = _decimal(data["unit_price"], "unit_price", index)

    data["quantity"] = quantity
    data["unit_price"] = unit_price
    data["total"] = quantity * unit_price
    return data


def validate_vat_rate(vat_rate: Any) -> Decimal:
    try:
        rate = Decimal(str(vat_rate))
    except InvalidOperation:
        raise InvalidInputError("vat_rate must be a number")
    if not rate.is_finite() or rate < 0 or rate > 100:
        raise InvalidInputError("vat_rate must be between 0 and 100")
    return rate


def calculate_totals(
    line_items: Iterable[Any],
    vat_rate: Any = DEFAULT_VAT_RATE,
) -> Totals:
    """
    Price every line and compute subtotal, VAT and grand total.

    Args:
        line_items: Dicts (or models) with description, quantity, unit_price
        vat_rate: Percentage, 0-100

    Returns:
        Totals with each line's total filled in
    """
    rate = validate_vat_rate(vat_rate)
    priced = [price_line(item, index) for index, item in enumerate(line_items)]

    subtotal = sum((line["total"] for line in priced), Decimal("0"))
    vat_amount = subtotal * rate / Decimal("100")

    return Totals(
        line_items=priced,
        subtotal=subtotal,
        vat_amount=vat_amount,
        total_amount=subtotal + vat_amount,
    )


def calculate_parts_cost(parts: Iterable[Any]) -> tuple[list[dict[str, Any]], Decimal]:
    """Price parts used on a job. Returns (priced parts, sum of totals)."""
    priced = [price_line(part, index) for index, part in enumerate(parts)]
    return priced, sum((part["total"] for part in priced), Decimal("0"))
