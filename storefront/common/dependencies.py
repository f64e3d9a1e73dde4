from typing import Optional
from fastapi import Header, Request
from storefront.common.custom_exceptions import InvalidRequest


def session_token_header(session_id: Optional[str] = Header(None, alias="Session-Id")) -> Optional[str]:
    if session_id is None:
        return None
    return session_id.strip() or None


def require_token(session_token: Optional[str]) -> str:
    if not session_token or not session_token.strip():
        raise InvalidRequest("session token is required")
    return session_token.strip()


def get_payment_client(request: Request):
    return request.app.state.payment_client


def get_notification_worker(request: Request):
    return request.app.state.notification_worker
