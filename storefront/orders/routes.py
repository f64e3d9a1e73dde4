from typing import Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.common.constants import request_id_ctx
from storefront.common.dependencies import get_notification_worker, get_payment_client, session_token_header
from storefront.common.utils import success_response
from storefront.db.dependencies import get_session
from storefront.orders.constants import PaymentPath
from storefront.orders.models import CheckoutIn
from storefront.orders.repository import get_order, get_order_items
from storefront.orders.services import checkout, resume_hosted_payment
from storefront.orders.utils import order_out

orders_router = APIRouter()


@orders_router.post("/checkout/manual")
async def checkout_manual(payload: CheckoutIn,
                          idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
                          session: AsyncSession = Depends(get_session),
                          payment_client=Depends(get_payment_client),
                          notification_worker=Depends(get_notification_worker)):

    result = await checkout(
        session, payload.session_token, payload.customer, PaymentPath.MANUAL,
        payment_client=payment_client,
        notification_worker=notification_worker,
        idempotency_key=idempotency_key,
    )
    return success_response(result, request_id=request_id_ctx.get())


@orders_router.post("/checkout/hosted-session")
async def checkout_hosted(payload: CheckoutIn,
                          idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
                          session: AsyncSession = Depends(get_session),
                          payment_client=Depends(get_payment_client),
                          notification_worker=Depends(get_notification_worker)):

    result = await checkout(
        session, payload.session_token, payload.customer, PaymentPath.HOSTED,
        payment_client=payment_client,
        notification_worker=notification_worker,
        idempotency_key=idempotency_key,
    )
    return success_response(result, request_id=request_id_ctx.get())


@orders_router.get("/orders/{order_id}")
async def get_order_details(order_id: str, session_token: Optional[str] = Depends(session_token_header),
                            session: AsyncSession = Depends(get_session)):
    order = await get_order(session, order_id, session_token)
    line_items = await get_order_items(session, order.id)
    return success_response(order_out(order, line_items), request_id=request_id_ctx.get())


@orders_router.post("/orders/{order_id}/hosted-session")
async def retry_hosted_session(order_id: str, session_token: Optional[str] = Depends(session_token_header),
                               session: AsyncSession = Depends(get_session),
                               payment_client=Depends(get_payment_client)):

    result = await resume_hosted_payment(session, order_id, session_token, payment_client=payment_client)
    return success_response(result, request_id=request_id_ctx.get())
