"""Read models for the pharmacy catalogue."""
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, field_validator


class InventoryRow(BaseModel):
    """One in-stock, non-expired catalogue product."""

    id: int
    name: str
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None
    dosage_form: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    stock: Optional[int] = None
    selling_price: Optional[float] = None
    expiry: Optional[date] = None
    unit: Optional[str] = None

    @field_validator("selling_price", mode="before")
    @classmethod
    def _price_to_float(cls, value):
        if isinstance(value, Decimal):
            return float(value)
        return value

    @property
    def display_name(self) -> str:
        return self.brand_name or self.name

    def stock_line(self) -> str:
        price = f"{self.selling_price:.2f}" if self.selling_price is not None else "N/A"
        expiry = self.expiry.isoformat() if self.expiry else "N/A"
        stock = self.stock if self.stock is not None else "N/A"
        return f"{self.name}: {stock} units at ₱{price} (exp: {expiry})"
