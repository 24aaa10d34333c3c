"""Priced line of a quotation or invoice, or a part used on a job."""

from decimal import Decimal

from pydantic import BaseModel, Field


class LineItem(BaseModel):
    """
    One priced line.

    total is always quantity x unit_price; it is recomputed by
    core.pricing whenever lines are saved, never taken from the caller.
    """

    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)
    total: Decimal = Decimal("0")

    model_config = {"from_attributes": True}
