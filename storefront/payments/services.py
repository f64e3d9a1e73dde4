from decimal import Decimal
from typing import Any, Dict, List
from storefront.common.custom_exceptions import PaymentProviderFailure
from storefront.common.utils import money_str, to_money
from storefront.payments.constants import logger


def to_minor_units(amount) -> int:
    return int((to_money(amount) * 100).to_integral_value())


def build_hosted_line_items(order: Dict[str, Any], line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    items = []
    for li in line_items:
        name = f"{li['title']} #{li['issue']}" if li.get("issue") else li["title"]
        items.append({
            "name": name,
            "unit_amount": to_minor_units(li["unit_price"]),
            "quantity": li["qty"],
        })

    if to_money(order["shipping"]) > Decimal("0"):
        items.append({"name": "Shipping", "unit_amount": to_minor_units(order["shipping"]), "quantity": 1})
    return items


def fill_order_url(template: str, order_id: str) -> str:
    return template.replace("{order_id}", order_id)


def route_manual(order: Dict[str, Any], line_items: List[Dict[str, Any]], notification_worker) -> Dict[str, Any]:
    """Hand the placed order to the notifier without waiting on it, then confirm synchronously."""
    try:
        queued = notification_worker.submit({
            "event": "order_placed",
            "data": {"order": order, "items": line_items},
        })
        if not queued:
            logger.warning("notification.enqueue.dropped", extra={"order_id": order["order_id"]})
    except Exception:
        logger.exception("notification.enqueue.failed", extra={"order_id": order["order_id"]})

    return manual_confirmation(order)


def manual_confirmation(order: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "message": "Order received",
        "orderId": order["order_id"],
        "subtotal": money_str(order["subtotal"]),
        "shipping": money_str(order["shipping"]),
        "total": money_str(order["total"]),
        "currency": order["currency"],
        "paymentMethod": order["payment_method"],
        "pickup": order["pickup"],
        "status": order["status"],
    }


async def route_hosted(order: Dict[str, Any], line_items: List[Dict[str, Any]], payment_client,
                       success_url: str, cancel_url: str) -> Dict[str, Any]:
    """
    Ask the hosted provider for a payment session mirroring the order snapshot.
    The cart and the order status are left alone; confirming payment happens outside this service.
    """
    provider_items = build_hosted_line_items(order, line_items)
    try:
        hosted = await payment_client.create_session(
            line_items=provider_items,
            success_url=fill_order_url(success_url, order["order_id"]),
            cancel_url=fill_order_url(cancel_url, order["order_id"]),
            client_reference_id=order["order_id"],
            currency=order["currency"],
            customer_email=order["email"],
        )
    except PaymentProviderFailure as ex:
        logger.error("checkout.hosted.provider_failed", extra={"order_id": order["order_id"]})
        # the order is already written; the client retries the redirect against it
        ex.context["order_id"] = order["order_id"]
        raise
    except Exception as ex:
        logger.exception("checkout.hosted.provider_error", extra={"order_id": order["order_id"]})
        raise PaymentProviderFailure("could not create hosted payment session", order_id=order["order_id"]) from ex

    return {"orderId": order["order_id"], "redirectUrl": hosted.redirect_url}
