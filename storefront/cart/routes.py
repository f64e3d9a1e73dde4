from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.cart.models import CartItemIn, CartQuantityIn
from storefront.cart.repository import add_item, cart_snapshot, clear_cart, remove_item, set_quantity
from storefront.common.constants import request_id_ctx
from storefront.common.dependencies import require_token, session_token_header
from storefront.common.utils import money_str, success_response
from storefront.db.dependencies import get_session

carts_router=APIRouter()


def cart_out(session_token, lines):
    items = []
    for line in lines:
        item = line["item"]
        items.append({
            "cartItemId": line["cart_item_id"],
            "quantity": line["quantity"],
            "item": {
                "id": item["id"],
                "title": item["title"],
                "issue": item["issue"],
                "publisher": item["publisher"],
                "unitPrice": money_str(item["unit_price"]),
                "image": item["image"],
            },
        })
    return {"sessionToken": session_token, "items": items}


@carts_router.get("")
async def get_cart(session_token: Optional[str] = Depends(session_token_header), session: AsyncSession = Depends(get_session)):
    # no token means nothing to look up, not an error
    if not session_token:
        return success_response({"sessionToken": None, "items": []}, request_id=request_id_ctx.get())

    lines = await cart_snapshot(session, session_token)
    return success_response(cart_out(session_token, lines), request_id=request_id_ctx.get())


@carts_router.post("/items")
async def add_to_cart(payload: CartItemIn, session: AsyncSession = Depends(get_session)):
    session_token = require_token(payload.session_token)

    line = await add_item(session, session_token, payload.item_id)
    await session.commit()

    resp = {
        "message": "Added to cart",
        "cartItemId": line["cart_item_id"],
        "itemId": line["item_id"],
        "quantity": line["quantity"],
    }
    return success_response(resp, request_id=request_id_ctx.get())


@carts_router.patch("/items/{item_id}")
async def update_quantity(item_id: int, payload: CartQuantityIn, session: AsyncSession = Depends(get_session)):
    session_token = require_token(payload.session_token)

    line = await set_quantity(session, session_token, item_id, payload.quantity)
    await session.commit()

    resp = {"message": "Quantity updated", "itemId": item_id, "quantity": line["quantity"]}
    return success_response(resp, request_id=request_id_ctx.get())


@carts_router.delete("/items/{item_id}")
async def remove_from_cart(item_id: int, session_token: Optional[str] = Depends(session_token_header),
                           session: AsyncSession = Depends(get_session)):
    session_token = require_token(session_token)

    removed = await remove_item(session, session_token, item_id)
    await session.commit()

    return success_response({"message": "Item removed", "removed": removed}, request_id=request_id_ctx.get())


@carts_router.delete("")
async def empty_cart(session_token: Optional[str] = Depends(session_token_header), session: AsyncSession = Depends(get_session)):
    session_token = require_token(session_token)

    cleared = await clear_cart(session, session_token)
    await session.commit()

    return success_response({"message": "Cart cleared", "cleared": cleared}, request_id=request_id_ctx.get())
