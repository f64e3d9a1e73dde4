from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from storefront.cart.repository import cart_snapshot, clear_cart, find_cart_id
from storefront.common.custom_exceptions import EmptyCart, InvalidRequest, PersistenceFailure
from storefront.config.settings import config_settings
from storefront.orders.constants import IDEMPOTENCY_KEY_MAX_LEN, PaymentPath, logger
from storefront.orders.repository import (create_order, find_idempotency_key, get_order, get_order_by_id, get_order_items,
                                          record_idempotency_key, update_idempotent_response)
from storefront.orders.utils import build_line_items, compute_order_totals, normalize_country, order_summary
from storefront.payments.services import manual_confirmation, route_hosted, route_manual
from storefront.schema.full_schema import OrderStatus

CHECKOUT_SUCCESS_URL = config_settings.CHECKOUT_SUCCESS_URL
CHECKOUT_CANCEL_URL = config_settings.CHECKOUT_CANCEL_URL
HOSTED_PAYMENT_PROVIDER = config_settings.HOSTED_PAYMENT_PROVIDER


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def validate_checkout_request(session_token, customer, payment_path: PaymentPath, idempotency_key=None) -> Dict[str, Any]:
    """All precondition checks, before anything touches the database."""
    if not _clean(session_token):
        raise InvalidRequest("sessionToken is required")
    if customer is None:
        raise InvalidRequest("customer is required")

    missing = [f for f in ("name", "email", "address") if not _clean(getattr(customer, f))]
    if payment_path == PaymentPath.MANUAL and not _clean(customer.payment_method):
        missing.append("paymentMethod")
    if missing:
        raise InvalidRequest(f"missing customer fields: {', '.join(missing)}")

    if idempotency_key is not None and not (0 < len(idempotency_key.strip()) <= IDEMPOTENCY_KEY_MAX_LEN):
        raise InvalidRequest("Idempotency-Key must be 1-128 characters")

    payment_method = _clean(customer.payment_method) if payment_path == PaymentPath.MANUAL else HOSTED_PAYMENT_PROVIDER
    return {
        "name": _clean(customer.name),
        "email": _clean(customer.email),
        "address": _clean(customer.address),
        "country": normalize_country(customer.country),
        "payment_method": payment_method,
        "pickup": bool(customer.pickup),
    }


async def _stored_response(session, idempotency_key: Optional[str], session_token: str):
    if not idempotency_key:
        return None
    row = await find_idempotency_key(session, idempotency_key)
    if row is None:
        return None
    if row.session_token != session_token:
        raise InvalidRequest("Idempotency-Key was already used by another session")
    return row


async def _replay(session, row, payment_path: PaymentPath, *, payment_client, success_url, cancel_url) -> Dict[str, Any]:
    """Answer a repeated request from what the first one stored."""
    if row.response_body is not None:
        logger.info("checkout.idempotent.replay", extra={"order_id": row.response_body.get("orderId")})
        await session.rollback()
        return row.response_body

    # hosted order committed but the provider step never completed: retry only that step
    order = await get_order_by_id(session, row.order_id) if row.order_id else None
    if order is None or payment_path != PaymentPath.HOSTED or order.status != OrderStatus.PENDING_PAYMENT.value:
        await session.rollback()
        raise InvalidRequest("Idempotency-Key belongs to a different checkout request")

    summary = order_summary(order)
    line_items = await get_order_items(session, order.id)
    await session.rollback()
    logger.info("checkout.hosted.redirect_retry", extra={"order_id": summary["order_id"]})
    return await _hosted_redirect(session, summary, line_items, payment_client,
                                  success_url, cancel_url, row.key)


async def _hosted_redirect(session, summary, line_items, payment_client, success_url, cancel_url, idempotency_key):
    result = await route_hosted(summary, line_items, payment_client, success_url, cancel_url)

    if idempotency_key:
        try:
            await update_idempotent_response(session, idempotency_key, 200, result)
            await session.commit()
        except SQLAlchemyError:
            # the redirect is still valid; a replay just asks the provider again
            await session.rollback()
            logger.exception("checkout.idempotent.store_failed", extra={"order_id": summary["order_id"]})
    return result


async def checkout(session, session_token: Optional[str], customer, payment_path: PaymentPath, *,
                   payment_client=None, notification_worker=None,
                   success_url: str = CHECKOUT_SUCCESS_URL, cancel_url: str = CHECKOUT_CANCEL_URL,
                   currency: Optional[str] = None, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Turn the session's cart into an order and route it to a payment path.

    Manual: order is written as `pending`, the cart is removed in the same transaction
    and the notifier is fed in the background.
    Hosted: order is written as `pending_payment`, the cart stays, and the caller gets the
    provider redirect. A provider failure leaves the order in place for reconciliation.
    """
    payment_path = PaymentPath(payment_path)
    fields = validate_checkout_request(session_token, customer, payment_path, idempotency_key)
    session_token = _clean(session_token)
    idempotency_key = idempotency_key.strip() if idempotency_key else None
    currency = currency or config_settings.CURRENCY

    replay_kwargs = {"payment_client": payment_client, "success_url": success_url, "cancel_url": cancel_url}

    row = await _stored_response(session, idempotency_key, session_token)
    if row is not None:
        return await _replay(session, row, payment_path, **replay_kwargs)

    try:
        # held until commit: a concurrent checkout of this cart waits, then finds it gone
        cart_id = await find_cart_id(session, session_token, lock=True)

        # the first request with this key may have committed while we waited on the lock
        row = await _stored_response(session, idempotency_key, session_token)
        if row is not None:
            return await _replay(session, row, payment_path, **replay_kwargs)

        cart_lines = await cart_snapshot(session, session_token) if cart_id is not None else []
    except SQLAlchemyError as ex:
        await session.rollback()
        logger.exception("checkout.cart_read.failed")
        raise PersistenceFailure("could not read cart") from ex

    if not cart_lines:
        await session.rollback()
        raise EmptyCart("Cart is empty")

    line_items = build_line_items(cart_lines)
    totals = compute_order_totals(line_items, fields["country"], fields["pickup"])

    status = OrderStatus.PENDING if payment_path == PaymentPath.MANUAL else OrderStatus.PENDING_PAYMENT
    order_fields = {
        **fields,
        **totals,
        "session_token": session_token,
        "currency": currency,
        "status": status.value,
    }

    try:
        order = await create_order(session, order_fields, line_items)
        summary = order_summary(order)

        if payment_path == PaymentPath.MANUAL:
            await _clear_cart_after_order(session, session_token, summary["order_id"])

        if idempotency_key:
            # hosted responses are stored once the provider answered
            body = manual_confirmation(summary) if payment_path == PaymentPath.MANUAL else None
            await record_idempotency_key(session, idempotency_key, session_token, order.id,
                                         response_code=200 if body else None, response_body=body)

        await session.commit()
    except IntegrityError as ex:
        await session.rollback()
        # lost a race on the same Idempotency-Key: answer like the winner did
        row = await _stored_response(session, idempotency_key, session_token) if idempotency_key else None
        if row is not None:
            return await _replay(session, row, payment_path, **replay_kwargs)
        logger.exception("checkout.persist.failed", extra={"payment_path": payment_path.value})
        raise PersistenceFailure("Failed to save order") from ex
    except SQLAlchemyError as ex:
        await session.rollback()
        logger.exception("checkout.persist.failed", extra={"payment_path": payment_path.value})
        raise PersistenceFailure("Failed to save order") from ex

    logger.info(
        "checkout.order.created",
        extra={"order_id": summary["order_id"], "payment_path": payment_path.value,
               "total": str(summary["total"]), "lines": len(line_items)},
    )

    if payment_path == PaymentPath.MANUAL:
        result = route_manual(summary, line_items, notification_worker)
        logger.info("checkout.manual.success", extra={"order_id": summary["order_id"]})
        return result

    result = await _hosted_redirect(session, summary, line_items, payment_client,
                                    success_url, cancel_url, idempotency_key)
    logger.info("checkout.hosted.success", extra={"order_id": summary["order_id"]})
    return result


async def resume_hosted_payment(session, public_id: str, session_token: Optional[str], *, payment_client,
                                success_url: str = CHECKOUT_SUCCESS_URL,
                                cancel_url: str = CHECKOUT_CANCEL_URL) -> Dict[str, Any]:
    """New provider redirect for a hosted order whose first redirect failed. No order is written."""
    if not _clean(session_token):
        raise InvalidRequest("Session-Id is required")

    order = await get_order(session, public_id, _clean(session_token))
    if order.status != OrderStatus.PENDING_PAYMENT.value:
        await session.rollback()
        raise InvalidRequest("Order is not awaiting a hosted payment", status=order.status)

    summary = order_summary(order)
    line_items = await get_order_items(session, order.id)
    await session.rollback()

    logger.info("checkout.hosted.redirect_retry", extra={"order_id": summary["order_id"]})
    return await route_hosted(summary, line_items, payment_client, success_url, cancel_url)


async def _clear_cart_after_order(session, session_token: str, order_id: str):
    # savepoint: a failed clear must not take the order rows down with it
    try:
        async with session.begin_nested():
            await clear_cart(session, session_token)
    except SQLAlchemyError:
        logger.exception("cart.clear.failed", extra={"order_id": order_id})
