import asyncio
from typing import Any, Dict, List, Optional
from storefront.common.custom_exceptions import NotificationFailure
from storefront.common.utils import money_str
from storefront.notifications.constants import logger


def format_line(li: Dict[str, Any], currency: str) -> str:
    issue = f" #{li['issue']}" if li.get("issue") else ""
    return f"- {li['title']}{issue} x{li['qty']} @ {money_str(li['unit_price'])} {currency} = {money_str(li['line_total'])}"


def order_mail_body(order: Dict[str, Any], line_items: List[Dict[str, Any]], intro: str) -> str:
    currency = order["currency"]
    lines = [
        intro,
        "",
        f"Order ID: {order['order_id']}",
        f"Name: {order['name']}",
        f"Email: {order['email']}",
        f"Address: {order['address'] or ''}",
        "",
        f"Payment Method: {order['payment_method']}",
        f"Pickup: {'Yes' if order['pickup'] else 'No'}",
        "",
        "Items:",
        *[format_line(li, currency) for li in line_items],
        "",
        f"Subtotal: {money_str(order['subtotal'])} {currency}",
        f"Shipping: {money_str(order['shipping'])} {currency}",
        f"Total: {money_str(order['total'])} {currency}",
    ]
    return "\n".join(lines)


class OrderNotifier:
    """Best-effort order mail. Every send is bounded by `timeout`; nothing raised here reaches checkout."""

    def __init__(self, mailer, admin_to: Optional[str] = None, timeout: float = 15.0):
        self.mailer = mailer
        self.admin_to = admin_to
        self.timeout = timeout

    async def _deliver(self, to: str, subject: str, text: str):
        try:
            await asyncio.wait_for(self.mailer.send(to, subject, text), timeout=self.timeout)
        except asyncio.TimeoutError as ex:
            raise NotificationFailure(f"mail send timed out after {self.timeout}s") from ex
        except Exception as ex:
            raise NotificationFailure(f"mail send failed: {ex!r}") from ex

    async def notify_order_placed(self, order: Dict[str, Any], line_items: List[Dict[str, Any]]) -> int:
        messages = []

        if self.admin_to:
            messages.append((
                "admin",
                self.admin_to,
                f"New iSellComics order {order['order_id']} - {order['name']}",
                order_mail_body(order, line_items, f"New order received from {order['name']}"),
            ))
        else:
            logger.warning("notification.admin.skipped", extra={"order_id": order["order_id"], "reason": "ORDER_NOTIFY_TO not set"})

        if order.get("email"):
            messages.append((
                "customer",
                order["email"],
                f"Your iSellComics order {order['order_id']}",
                order_mail_body(order, line_items, f"Thanks for your order, {order['name']}!"),
            ))

        sent = 0
        for recipient, to, subject, text in messages:
            try:
                await self._deliver(to, subject, text)
                sent += 1
                logger.info("notification.send.success", extra={"order_id": order["order_id"], "recipient": recipient})
            except NotificationFailure as ex:
                logger.error("notification.send.failed",
                             extra={"order_id": order["order_id"], "recipient": recipient, "error": ex.message})
        return sent
