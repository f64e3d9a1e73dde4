from typing import Any, Dict, List, Optional
from sqlalchemy import delete, select, update
from storefront.catalog.repository import require_comic
from storefront.common.custom_exceptions import InvalidRequest, NotFound
from storefront.common.utils import now
from storefront.db.utils import upsert_insert
from storefront.schema.full_schema import Cart, CartItem, Comic
from storefront.cart.constants import logger


async def find_cart_id(session, session_token: str, lock: bool = False) -> Optional[int]:
    stmt = select(Cart.id).where(Cart.session_token == session_token)
    if lock:
        # serializes checkouts of the same cart
        stmt = stmt.with_for_update()
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def get_or_create_cart(session, session_token: str) -> int:
    # concurrent first adds race on the unique session_token, the loser just reads the row back
    stmt = (
        upsert_insert(session, Cart)
        .values(session_token=session_token)
        .on_conflict_do_nothing(index_elements=["session_token"])
    )
    await session.execute(stmt)

    cart_id = await find_cart_id(session, session_token)
    if cart_id is None:
        raise NotFound("Cart could not be created")
    return cart_id


async def touch_cart(session, cart_id: int):
    await session.execute(update(Cart).where(Cart.id == cart_id).values(updated_at=now()))


async def add_item(session, session_token: str, item_id: int) -> Dict[str, Any]:
    """Add one unit of a catalog item, incrementing the line when it already exists."""
    await require_comic(session, item_id)

    cart_id = await get_or_create_cart(session, session_token)

    stmt = (
        upsert_insert(session, CartItem)
        .values(cart_id=cart_id, item_id=item_id, quantity=1)
        .on_conflict_do_update(
            index_elements=["cart_id", "item_id"],
            set_={"quantity": CartItem.quantity + 1},
        )
        .returning(CartItem.id, CartItem.quantity)
    )
    res = await session.execute(stmt)
    row = res.one()
    await touch_cart(session, cart_id)

    logger.debug("cart.item.added", extra={"cart_id": cart_id, "item_id": item_id, "quantity": row.quantity})
    return {"cart_item_id": row.id, "item_id": item_id, "quantity": row.quantity}


async def set_quantity(session, session_token: str, item_id: int, quantity: int) -> Dict[str, Any]:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidRequest("quantity must be a positive integer")

    cart_id = await find_cart_id(session, session_token)
    if cart_id is None:
        raise NotFound("Cart not found")

    stmt = (
        update(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.item_id == item_id)
        .values(quantity=quantity)
        .returning(CartItem.id, CartItem.quantity)
    )
    res = await session.execute(stmt)
    row = res.one_or_none()
    if row is None:
        raise NotFound("Item not found in cart")

    await touch_cart(session, cart_id)
    return {"cart_item_id": row.id, "item_id": item_id, "quantity": row.quantity}


async def remove_item(session, session_token: str, item_id: int) -> bool:
    """Delete one line. Missing cart or line is a no-op."""
    cart_id = await find_cart_id(session, session_token)
    if cart_id is None:
        return False

    res = await session.execute(
        delete(CartItem).where(CartItem.cart_id == cart_id, CartItem.item_id == item_id)
    )
    await touch_cart(session, cart_id)
    return bool(res.rowcount)


async def clear_cart(session, session_token: str) -> bool:
    """Delete the cart and all of its lines. Missing cart is a no-op."""
    cart_id = await find_cart_id(session, session_token)
    if cart_id is None:
        return False

    await session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
    await session.execute(delete(Cart).where(Cart.id == cart_id))
    return True


async def cart_snapshot(session, session_token: str) -> List[Dict[str, Any]]:
    """
    Cart lines joined with the catalog at read time.
    Lines whose comic no longer exists are left out.
    """
    stmt = (
        select(
            CartItem.id.label("cart_item_id"),
            CartItem.quantity,
            Comic.id.label("item_id"),
            Comic.title,
            Comic.issue,
            Comic.publisher,
            Comic.price,
            Comic.image,
        )
        .join(Cart, Cart.id == CartItem.cart_id)
        .join(Comic, Comic.id == CartItem.item_id)
        .where(Cart.session_token == session_token)
        .order_by(CartItem.id)
    )
    res = await session.execute(stmt)

    lines = []
    for row in res.all():
        lines.append({
            "cart_item_id": row.cart_item_id,
            "quantity": row.quantity,
            "item": {
                "id": row.item_id,
                "title": row.title,
                "issue": row.issue,
                "publisher": row.publisher,
                "unit_price": row.price,
                "image": row.image,
            },
        })
    return lines
