"""
Checkout workflow: catalog variation -> customer -> order -> payment.

The four remote calls run strictly in sequence. Each step reports a tagged
``StepResult`` and ``CheckoutWorkflow.run`` switches on it, so the state the
request reached is always explicit (see ``CheckoutState``).

Known, accepted behaviour:
    * Two concurrent requests for the same new customer name can both miss the
      search and both create a customer.
    * A payment failure after the order was created leaves that order OPEN in
      Square. Nothing here cancels it.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from checkout_api.schemas import CheckoutItem, CheckoutRequest
from checkout_api.square_api import (
    CreatedOrder,
    CreatedPayment,
    SquareApiClient,
    SquareApiError,
    new_idempotency_key,
)

logger = logging.getLogger(__name__)

ITEM_VARIATION_NOT_CONFIGURED = "Item variation not configured"

_WHITESPACE_RE = re.compile(r"\s+")


class CheckoutState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    CATALOG_RESOLVED = "CATALOG_RESOLVED"
    CUSTOMER_RESOLVED = "CUSTOMER_RESOLVED"
    ORDER_CREATED = "ORDER_CREATED"
    PAYMENT_CREATED = "PAYMENT_CREATED"
    RESPONDED = "RESPONDED"
    FAILED = "FAILED"


class FailureKind(str, enum.Enum):
    CONFIGURATION = "configuration"
    REMOTE = "remote"


@dataclass(frozen=True)
class StepResult:
    ok: bool
    value: Any = None
    failure_kind: FailureKind | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: Any = None) -> "StepResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: FailureKind, error: str) -> "StepResult":
        return cls(ok=False, failure_kind=kind, error=error)


@dataclass(frozen=True)
class CheckoutOutcome:
    state: CheckoutState
    payment_id: str | None = None
    order_id: str | None = None
    status: str | None = None
    failure_kind: FailureKind | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == CheckoutState.RESPONDED


def normalize_reference_id(customer_name: str) -> str:
    return _WHITESPACE_RE.sub("_", customer_name.strip().lower())


def split_customer_name(customer_name: str) -> tuple[str, str]:
    parts = [part for part in customer_name.strip().split(" ") if part]
    given_name = parts[0] if parts else customer_name
    family_name = " ".join(parts[1:])
    return given_name, family_name


def to_minor_units(value: Decimal | float | int | str) -> int:
    """Converts a decimal currency amount to integer cents, rounding half up."""
    decimal_value = value if isinstance(value, Decimal) else Decimal(str(value))
    return int((decimal_value * Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_item_note(item: CheckoutItem) -> str:
    if item.comment:
        return f"{item.name} - {item.comment}"
    return item.name


@dataclass(frozen=True)
class CheckoutWorkflow:
    square_api: SquareApiClient
    location_id: str
    catalog_item_id: str
    currency: str = "USD"

    async def resolve_item_variation_id(self) -> str | None:
        try:
            catalog_object = await self.square_api.retrieve_catalog_object(
                object_id=self.catalog_item_id,
                include_related_objects=True,
            )
        except SquareApiError as exc:
            logger.error("Catalog lookup for %s failed: %s", self.catalog_item_id, exc.detail)
            return None

        variations = (catalog_object.get("item_data") or {}).get("variations") or []
        if not variations:
            return None
        variation_id = variations[0].get("id") if isinstance(variations[0], dict) else None
        return variation_id or None

    async def resolve_customer_id(self, customer_name: str) -> str | None:
        reference_id = normalize_reference_id(customer_name)
        try:
            matches = await self.square_api.search_customers_by_reference_id(reference_id=reference_id)
            if matches:
                return matches[0].get("id")

            given_name, family_name = split_customer_name(customer_name)
            customer_id = await self.square_api.create_customer(
                given_name=given_name,
                family_name=family_name,
                reference_id=reference_id,
                idempotency_key=new_idempotency_key(),
            )
            logger.info("Created customer %s for reference %s", customer_id, reference_id)
            return customer_id
        except SquareApiError as exc:
            logger.warning("Customer resolution for %s failed: %s", reference_id, exc.detail)
            return None

    async def create_order(
        self,
        *,
        variation_id: str,
        customer_id: str | None,
        items: list[CheckoutItem],
    ) -> CreatedOrder:
        line_items = [
            {
                "quantity": str(item.quantity),
                "catalog_object_id": variation_id,
                "base_price_money": {
                    "amount": to_minor_units(item.price),
                    "currency": self.currency,
                },
                "note": build_line_item_note(item),
            }
            for item in items
        ]
        order: dict[str, Any] = {
            "location_id": self.location_id,
            "line_items": line_items,
            "state": "OPEN",
        }
        if customer_id:
            order["customer_id"] = customer_id
        return await self.square_api.create_order(order=order, idempotency_key=new_idempotency_key())

    async def create_payment(
        self,
        *,
        source_id: str,
        amount: Decimal,
        order_id: str,
        customer_id: str | None,
        pickup_date: str,
    ) -> CreatedPayment:
        payment: dict[str, Any] = {
            "source_id": source_id,
            "amount_money": {
                "amount": to_minor_units(amount),
                "currency": self.currency,
            },
            "location_id": self.location_id,
            "order_id": order_id,
            "note": f"Pickup: {pickup_date}",
        }
        if customer_id:
            payment["customer_id"] = customer_id
        return await self.square_api.create_payment(payment=payment, idempotency_key=new_idempotency_key())

    async def _catalog_step(self) -> StepResult:
        variation_id = await self.resolve_item_variation_id()
        if not variation_id:
            return StepResult.failure(FailureKind.CONFIGURATION, ITEM_VARIATION_NOT_CONFIGURED)
        return StepResult.success(variation_id)

    async def _customer_step(self, customer_name: str) -> StepResult:
        return StepResult.success(await self.resolve_customer_id(customer_name))

    async def _order_step(self, *, variation_id: str, customer_id: str | None, request: CheckoutRequest) -> StepResult:
        try:
            order = await self.create_order(
                variation_id=variation_id,
                customer_id=customer_id,
                items=request.items,
            )
        except SquareApiError as exc:
            logger.error("Order creation failed: %s (errors=%s)", exc, exc.errors)
            return StepResult.failure(FailureKind.REMOTE, exc.detail)
        return StepResult.success(order)

    async def _payment_step(
        self,
        *,
        order: CreatedOrder,
        customer_id: str | None,
        request: CheckoutRequest,
    ) -> StepResult:
        try:
            payment = await self.create_payment(
                source_id=request.sourceId,
                amount=request.amount,
                order_id=order.id,
                customer_id=customer_id,
                pickup_date=request.pickupDate,
            )
        except SquareApiError as exc:
            logger.error(
                "Payment failed, order %s stays open: %s (errors=%s)",
                order.id,
                exc,
                exc.errors,
            )
            return StepResult.failure(FailureKind.REMOTE, exc.detail)
        return StepResult.success(payment)

    @staticmethod
    def _failed(result: StepResult, *, reached: CheckoutState) -> CheckoutOutcome:
        logger.info("Checkout failed after %s: %s", reached.value, result.error)
        return CheckoutOutcome(
            state=CheckoutState.FAILED,
            failure_kind=result.failure_kind,
            error=result.error,
        )

    async def run(self, request: CheckoutRequest) -> CheckoutOutcome:
        state = CheckoutState.RECEIVED

        result = await self._catalog_step()
        if not result.ok:
            return self._failed(result, reached=state)
        variation_id: str = result.value
        state = CheckoutState.CATALOG_RESOLVED

        result = await self._customer_step(request.customerName)
        customer_id: str | None = result.value
        state = CheckoutState.CUSTOMER_RESOLVED

        result = await self._order_step(variation_id=variation_id, customer_id=customer_id, request=request)
        if not result.ok:
            return self._failed(result, reached=state)
        order: CreatedOrder = result.value
        state = CheckoutState.ORDER_CREATED
        logger.info("Created order %s", order.id)

        result = await self._payment_step(order=order, customer_id=customer_id, request=request)
        if not result.ok:
            return self._failed(result, reached=state)
        payment: CreatedPayment = result.value
        state = CheckoutState.PAYMENT_CREATED
        logger.info("Created payment %s for order %s (status=%s)", payment.id, order.id, payment.status)

        return CheckoutOutcome(
            state=CheckoutState.RESPONDED,
            payment_id=payment.id,
            order_id=order.id,
            status=payment.status,
        )
