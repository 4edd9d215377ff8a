from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class CheckoutItem(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    comment: str | None = None


class CheckoutRequest(BaseModel):
    sourceId: str = Field(min_length=1)
    amount: Decimal = Field(ge=0)
    customerName: str
    pickupDate: str
    items: list[CheckoutItem] = Field(min_length=1)


class CheckoutResponse(BaseModel):
    success: bool = True
    paymentId: str
    orderId: str
    status: str


class CheckoutErrorResponse(BaseModel):
    success: bool = False
    error: str
