from fastapi import FastAPI, Request,status
from starlette.exceptions import HTTPException
from fastapi.exceptions import RequestValidationError
from storefront import logger
from storefront.common.utils import build_error, json_error
from storefront.common.constants import request_id_ctx


PUBLIC_CONTEXT = {"order_id": "orderId"}


class StorefrontError(Exception):
    """Base for errors that map onto an error envelope."""
    code = "SERVER_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class InvalidRequest(StorefrontError):
    code = "INVALID_REQUEST"
    status_code = status.HTTP_400_BAD_REQUEST


class EmptyCart(StorefrontError):
    code = "EMPTY_CART"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(StorefrontError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class PersistenceFailure(StorefrontError):
    code = "PERSISTENCE_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PaymentProviderFailure(StorefrontError):
    code = "PAYMENT_PROVIDER_FAILURE"
    status_code = status.HTTP_502_BAD_GATEWAY


class NotificationFailure(StorefrontError):
    # raised inside the notifier only, never reaches a client
    code = "NOTIFICATION_FAILURE"


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)
    body = {"message": "Internal Server Error"}

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "request_id": rid,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details=body, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def storefront_exception_handler(request: Request, exc: StorefrontError):
    rid = request_id_ctx.get(None)

    if exc.status_code >= 500:
        logger.error(
            "request.failed",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message, **exc.context},
        )
    else:
        logger.info(
            "request.rejected",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message},
        )

    details = {"message": exc.message}
    # identifiers the client needs to recover, e.g. the order a failed redirect belongs to
    for key, public_key in PUBLIC_CONTEXT.items():
        if exc.context.get(key) is not None:
            details[public_key] = exc.context[key]

    payload = build_error(code=exc.code, details=details, request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    payload = build_error(code="UNPROCESSABLE_ENTITY", details={"message":"invalid request"}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):
    rid = request_id_ctx.get(None)

    payload = build_error(code=f"HTTP_{exc.status_code}", details={"message":exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # anything unhandled
        fallback_handler
    )

    app.add_exception_handler(
        StorefrontError,
        storefront_exception_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
