from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from checkout_api.checkout import CheckoutWorkflow, FailureKind
from checkout_api.config import Settings
from checkout_api.logging_config import setup_logging
from checkout_api.schemas import CheckoutErrorResponse, CheckoutRequest, CheckoutResponse
from checkout_api.square_api import SquareApiClient

logger = logging.getLogger(__name__)

CHECKOUT_PATH = "/api/pay"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _format_validation_error(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        if error.get("type") == "json_invalid":
            messages.append(error.get("msg", "Invalid JSON"))
            continue
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request body"


def get_checkout_workflow(request: Request) -> CheckoutWorkflow:
    app_settings: Settings = request.app.state.settings
    return CheckoutWorkflow(
        square_api=request.app.state.square_api,
        location_id=app_settings.SQUARE_LOCATION_ID,
        catalog_item_id=app_settings.SQUARE_CATALOG_ITEM_ID,
        currency=app_settings.CHECKOUT_CURRENCY,
    )


def create_app(
    *,
    settings: Settings | None = None,
    square_api: SquareApiClient | None = None,
) -> FastAPI:
    if settings is None:
        from checkout_api.config import settings as default_settings

        settings = default_settings

    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(title="Pickup Checkout API", default_response_class=ORJSONResponse)
    app.state.settings = settings
    app.state.square_api = square_api or SquareApiClient.from_settings(settings)

    @app.middleware("http")
    async def cors_headers(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
        # Router raises 405 for any verb without a matching route, including unknown ones.
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            return ORJSONResponse(
                status_code=exc.status_code,
                content={"error": "Method not allowed"},
                headers=exc.headers,
            )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError) -> ORJSONResponse:
        logger.warning("Rejected checkout body: %s", exc.errors())
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=CheckoutErrorResponse(error=_format_validation_error(exc)).model_dump(),
        )

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.options(CHECKOUT_PATH)
    def checkout_preflight() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.post(CHECKOUT_PATH, response_model=CheckoutResponse)
    async def checkout(
        payload: CheckoutRequest,
        workflow: CheckoutWorkflow = Depends(get_checkout_workflow),
    ):
        try:
            outcome = await workflow.run(payload)
        except Exception as exc:
            logger.exception("Unhandled checkout error")
            return ORJSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=CheckoutErrorResponse(error=str(exc) or "Internal server error").model_dump(),
            )

        if not outcome.succeeded:
            if outcome.failure_kind == FailureKind.CONFIGURATION:
                logger.error("Checkout aborted before any charge: %s", outcome.error)
            return ORJSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=CheckoutErrorResponse(error=outcome.error or "Internal server error").model_dump(),
            )

        return CheckoutResponse(
            paymentId=outcome.payment_id,
            orderId=outcome.order_id,
            status=outcome.status,
        )

    return app
