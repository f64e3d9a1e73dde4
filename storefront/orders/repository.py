import uuid
from typing import Any, Dict, List, Optional
from sqlalchemy import select, update
from storefront.common.custom_exceptions import NotFound
from storefront.schema.full_schema import IdempotencyKey, OrderItem, Orders


async def create_order(session, order_fields: Dict[str, Any], line_items: List[Dict[str, Any]]) -> Orders:
    """
    Stage the order row and its line snapshots in the caller's transaction.
    Nothing is committed here; a failure leaves the caller to roll back the whole unit.
    """
    order = Orders(**order_fields)
    session.add(order)
    await session.flush()

    session.add_all([OrderItem(order_id=order.id, **li) for li in line_items])
    await session.flush()
    return order


async def get_order(session, public_id: str, session_token: Optional[str]) -> Orders:
    try:
        order_uuid = uuid.UUID(str(public_id))
    except ValueError:
        raise NotFound("Order not found")

    stmt = select(Orders).where(Orders.public_id == order_uuid)
    res = await session.execute(stmt)
    order = res.scalar_one_or_none()

    # another session's order looks exactly like a missing one
    if order is None or not session_token or order.session_token != session_token:
        raise NotFound("Order not found")
    return order


async def get_order_by_id(session, order_id: int) -> Optional[Orders]:
    res = await session.execute(select(Orders).where(Orders.id == order_id))
    return res.scalar_one_or_none()


async def get_order_items(session, order_id: int) -> List[Dict[str, Any]]:
    stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
    res = await session.execute(stmt)
    return [
        {
            "item_id": oi.item_id,
            "title": oi.title,
            "issue": oi.issue,
            "qty": oi.qty,
            "unit_price": oi.unit_price,
            "line_total": oi.line_total,
            "image": oi.image,
        }
        for oi in res.scalars().all()
    ]


async def find_idempotency_key(session, key: str) -> Optional[IdempotencyKey]:
    res = await session.execute(select(IdempotencyKey).where(IdempotencyKey.key == key))
    return res.scalar_one_or_none()


async def record_idempotency_key(session, key: str, session_token: str, order_id: int,
                                 response_code: Optional[int] = None, response_body: Optional[dict] = None):
    session.add(IdempotencyKey(
        key=key,
        session_token=session_token,
        order_id=order_id,
        response_code=response_code,
        response_body=response_body,
    ))
    await session.flush()


async def update_idempotent_response(session, key: str, response_code: int, response_body: dict):
    stmt = (
        update(IdempotencyKey)
        .where(IdempotencyKey.key == key)
        .values(response_code=response_code, response_body=response_body)
    )
    await session.execute(stmt)
