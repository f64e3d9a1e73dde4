from decimal import Decimal
from typing import Any, Dict, List, Optional
from storefront.common.utils import money_str, to_money
from storefront.config.settings import config_settings

CANADA = {"CA", "CANADA"}
UNITED_STATES = {"US", "USA", "UNITED STATES"}

CA_FREE_SHIPPING_MIN = Decimal("99")
CA_FLAT_SHIPPING = Decimal("20.00")
US_FREE_SHIPPING_MIN = Decimal("105")
US_FLAT_SHIPPING = Decimal("30.00")
INTL_FLAT_SHIPPING = Decimal("40.00")
ZERO = Decimal("0.00")


def normalize_country(country: Optional[str]) -> str:
    value = (country or "").strip().upper()
    return value or config_settings.DEFAULT_COUNTRY.upper()


def shipping_cost(subtotal, country: Optional[str] = None, pickup: bool = False) -> Decimal:
    """Shipping for an order subtotal. Pickup is always free; the rest is a flat rate per region
    with a free-shipping threshold for Canada and the US."""
    if pickup:
        return ZERO

    subtotal = to_money(subtotal)
    region = normalize_country(country)

    if region in CANADA:
        return ZERO if subtotal >= CA_FREE_SHIPPING_MIN else CA_FLAT_SHIPPING
    if region in UNITED_STATES:
        return ZERO if subtotal >= US_FREE_SHIPPING_MIN else US_FLAT_SHIPPING
    return INTL_FLAT_SHIPPING


def build_line_items(cart_lines: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Freeze cart lines into order line snapshots using the catalog price read with the cart."""
    line_items = []
    for line in cart_lines:
        item = line["item"]
        unit_price = to_money(item["unit_price"])
        qty = int(line["quantity"])
        line_items.append({
            "item_id": item["id"],
            "title": item["title"],
            "issue": item["issue"],
            "qty": qty,
            "unit_price": unit_price,
            "line_total": to_money(unit_price * qty),
            "image": item["image"],
        })
    return line_items


def compute_order_totals(line_items: List[Dict[str, Any]], country: Optional[str], pickup: bool) -> Dict[str, Decimal]:
    subtotal = to_money(sum((li["line_total"] for li in line_items), ZERO))
    shipping = shipping_cost(subtotal, country, pickup)
    return {"subtotal": subtotal, "shipping": shipping, "total": to_money(subtotal + shipping)}


def order_summary(order) -> Dict[str, Any]:
    """Plain dict view of an order row, safe to hand to background tasks."""
    return {
        "order_id": str(order.public_id),
        "name": order.name,
        "email": order.email,
        "address": order.address,
        "country": order.country,
        "payment_method": order.payment_method,
        "pickup": order.pickup,
        "subtotal": to_money(order.subtotal),
        "shipping": to_money(order.shipping),
        "total": to_money(order.total),
        "currency": order.currency,
        "status": order.status,
    }


def line_item_out(li: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "itemId": li["item_id"],
        "title": li["title"],
        "issue": li["issue"],
        "qty": li["qty"],
        "unitPrice": money_str(li["unit_price"]),
        "lineTotal": money_str(li["line_total"]),
        "image": li["image"],
    }


def order_out(order, line_items: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "orderId": str(order.public_id),
        "status": order.status,
        "name": order.name,
        "email": order.email,
        "address": order.address,
        "country": order.country,
        "paymentMethod": order.payment_method,
        "pickup": order.pickup,
        "subtotal": money_str(order.subtotal),
        "shipping": money_str(order.shipping),
        "total": money_str(order.total),
        "currency": order.currency,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "items": [line_item_out(li) for li in line_items],
    }
