import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("SQUARE_ACCESS_TOKEN", "test_access_token")
os.environ.setdefault("SQUARE_LOCATION_ID", "LOC1")
os.environ.setdefault("SQUARE_CATALOG_ITEM_ID", "ITEM1")
os.environ.setdefault("SQUARE_ENVIRONMENT", "sandbox")

from checkout_api.square_api import CreatedOrder, CreatedPayment, SquareApiError


class FakeSquareApi:
    def __init__(
        self,
        *,
        variations: list[dict] | None = None,
        existing_customers: list[dict] | None = None,
        catalog_error: SquareApiError | None = None,
        customer_error: SquareApiError | None = None,
        order_error: SquareApiError | None = None,
        payment_error: SquareApiError | None = None,
        payment_status: str = "COMPLETED",
    ) -> None:
        self.variations = [{"id": "VAR1"}] if variations is None else variations
        self.existing_customers = existing_customers or []
        self.catalog_error = catalog_error
        self.customer_error = customer_error
        self.order_error = order_error
        self.payment_error = payment_error
        self.payment_status = payment_status
        self.calls: list[tuple[str, dict]] = []

    def calls_named(self, name: str) -> list[dict]:
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    async def retrieve_catalog_object(self, *, object_id: str, include_related_objects: bool = True) -> dict:
        self.calls.append(
            (
                "retrieve_catalog_object",
                {"object_id": object_id, "include_related_objects": include_related_objects},
            )
        )
        if self.catalog_error:
            raise self.catalog_error
        return {"id": object_id, "type": "ITEM", "item_data": {"variations": self.variations}}

    async def search_customers_by_reference_id(self, *, reference_id: str) -> list[dict]:
        self.calls.append(("search_customers_by_reference_id", {"reference_id": reference_id}))
        if self.customer_error:
            raise self.customer_error
        return list(self.existing_customers)

    async def create_customer(
        self,
        *,
        given_name: str,
        family_name: str,
        reference_id: str,
        idempotency_key: str | None = None,
    ) -> str:
        self.calls.append(
            (
                "create_customer",
                {
                    "given_name": given_name,
                    "family_name": family_name,
                    "reference_id": reference_id,
                    "idempotency_key": idempotency_key,
                },
            )
        )
        return "CUST_NEW"

    async def create_order(self, *, order: dict, idempotency_key: str | None = None) -> CreatedOrder:
        self.calls.append(("create_order", {"order": order, "idempotency_key": idempotency_key}))
        if self.order_error:
            raise self.order_error
        return CreatedOrder(id="ORDER1", order={"id": "ORDER1", **order})

    async def create_payment(self, *, payment: dict, idempotency_key: str | None = None) -> CreatedPayment:
        self.calls.append(("create_payment", {"payment": payment, "idempotency_key": idempotency_key}))
        if self.payment_error:
            raise self.payment_error
        return CreatedPayment(id="PAY1", status=self.payment_status, payment={"id": "PAY1"})


@pytest.fixture()
def fake_square_api() -> FakeSquareApi:
    return FakeSquareApi()


@pytest.fixture()
def api_client(fake_square_api):
    from checkout_api.main import create_app

    with TestClient(create_app(square_api=fake_square_api)) as client:
        yield client
