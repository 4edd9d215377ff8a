from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import httpx

from checkout_api.config import Settings


@dataclass(frozen=True)
class SquareErrorDetail:
    category: str | None = None
    code: str | None = None
    detail: str | None = None
    field: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "SquareErrorDetail":
        if not isinstance(payload, dict):
            return cls(detail=str(payload))
        return cls(
            category=payload.get("category"),
            code=payload.get("code"),
            detail=payload.get("detail"),
            field=payload.get("field"),
        )


class SquareApiError(RuntimeError):
    def __init__(
        self,
        *,
        message: str,
        status_code: int = 502,
        errors: list[SquareErrorDetail] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.errors = list(errors or [])

    @property
    def detail(self) -> str:
        """First human-readable detail Square reported, or the generic message."""
        for error in self.errors:
            if error.detail:
                return error.detail
        return self.message


@dataclass(frozen=True)
class CreatedOrder:
    id: str
    order: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CreatedPayment:
    id: str
    status: str
    payment: dict[str, Any] = field(default_factory=dict)


def new_idempotency_key() -> str:
    return str(uuid4())


class SquareApiClient:
    """Async adapter over the subset of the Square REST API used at checkout."""

    def __init__(
        self,
        *,
        access_token: str,
        base_url: str,
        api_version: str,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "SquareApiClient":
        return cls(
            access_token=settings.SQUARE_ACCESS_TOKEN,
            base_url=settings.square_base_url,
            api_version=settings.SQUARE_API_VERSION,
            timeout=settings.SQUARE_REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def search_customers_by_reference_id(self, *, reference_id: str) -> list[dict[str, Any]]:
        payload = {"query": {"filter": {"reference_id": {"exact": reference_id}}}}
        response = await self._request("POST", "/v2/customers/search", payload=payload)
        customers = response.get("customers") or []
        if not isinstance(customers, list):
            raise SquareApiError(message="Customer search response has a malformed customers list")
        return customers

    async def create_customer(
        self,
        *,
        given_name: str,
        family_name: str,
        reference_id: str,
        idempotency_key: str | None = None,
    ) -> str:
        payload = {
            "idempotency_key": idempotency_key or new_idempotency_key(),
            "given_name": given_name,
            "family_name": family_name,
            "reference_id": reference_id,
        }
        response = await self._request("POST", "/v2/customers", payload=payload)
        customer = response.get("customer") or {}
        customer_id = customer.get("id")
        if not isinstance(customer_id, str) or not customer_id:
            raise SquareApiError(message="Customer create response is missing customer.id")
        return customer_id

    async def retrieve_catalog_object(
        self,
        *,
        object_id: str,
        include_related_objects: bool = True,
    ) -> dict[str, Any]:
        params = {"include_related_objects": "true" if include_related_objects else "false"}
        response = await self._request("GET", f"/v2/catalog/object/{object_id}", params=params)
        catalog_object = response.get("object")
        if not isinstance(catalog_object, dict):
            raise SquareApiError(message=f"Catalog response for {object_id} is missing object")
        return catalog_object

    async def create_order(
        self,
        *,
        order: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> CreatedOrder:
        payload = {
            "idempotency_key": idempotency_key or new_idempotency_key(),
            "order": order,
        }
        response = await self._request("POST", "/v2/orders", payload=payload)
        created = response.get("order") or {}
        order_id = created.get("id")
        if not isinstance(order_id, str) or not order_id:
            raise SquareApiError(message="Order create response is missing order.id")
        return CreatedOrder(id=order_id, order=created)

    async def create_payment(
        self,
        *,
        payment: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> CreatedPayment:
        payload = {
            **payment,
            "idempotency_key": idempotency_key or new_idempotency_key(),
        }
        response = await self._request("POST", "/v2/payments", payload=payload)
        created = response.get("payment") or {}
        payment_id = created.get("id")
        if not isinstance(payment_id, str) or not payment_id:
            raise SquareApiError(message="Payment create response is missing payment.id")
        return CreatedPayment(id=payment_id, status=str(created.get("status") or ""), payment=created)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Square-Version": self._api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    json=payload,
                    params=params,
                    headers=self._headers(),
                )
        except httpx.RequestError as exc:
            raise SquareApiError(message=f"Network error while calling Square: {exc}") from exc

        if response.status_code >= 400:
            raise SquareApiError(
                message=f"Square API call failed ({response.status_code}): {method} {path}",
                status_code=response.status_code,
                errors=self._parse_errors(response),
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise SquareApiError(message="Square API returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise SquareApiError(message="Square API response must be a JSON object")
        return body

    @staticmethod
    def _parse_errors(response: httpx.Response) -> list[SquareErrorDetail]:
        try:
            body = response.json()
        except ValueError:
            return []
        if not isinstance(body, dict):
            return []
        errors = body.get("errors") or []
        if not isinstance(errors, list):
            return []
        return [SquareErrorDetail.from_payload(error) for error in errors]
