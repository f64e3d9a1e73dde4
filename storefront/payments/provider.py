import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import httpx
from storefront.common.circuit_breaker import CircuitBreaker, CircuitOpenError
from storefront.common.custom_exceptions import PaymentProviderFailure
from storefront.config.settings import config_settings
from storefront.payments.constants import logger

# connection never established, safe to send again
TRANSIENT_EXCEPTIONS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.RemoteProtocolError)
DEFAULT_BACKOFF_BASE = 0.5
MAX_BACKOFF = 4.0


@dataclass
class HostedSession:
    session_id: str
    redirect_url: str


def encode_session_form(line_items: List[Dict[str, Any]], success_url: str, cancel_url: str,
                        client_reference_id: str, currency: str, customer_email: Optional[str] = None) -> Dict[str, str]:
    """Flatten a checkout session request into stripe's bracketed form keys."""
    form = {
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": client_reference_id,
        "metadata[order_id]": client_reference_id,
    }
    if customer_email:
        form["customer_email"] = customer_email

    for idx, li in enumerate(line_items):
        prefix = f"line_items[{idx}]"
        form[f"{prefix}[quantity]"] = str(li["quantity"])
        form[f"{prefix}[price_data][currency]"] = currency.lower()
        form[f"{prefix}[price_data][unit_amount]"] = str(li["unit_amount"])
        form[f"{prefix}[price_data][product_data][name]"] = li["name"]
    return form


class StripeCheckoutClient:
    """Creates Stripe Checkout Sessions over the REST API."""

    name = "stripe"

    def __init__(self, secret_key: Optional[str], base_url: str = "https://api.stripe.com/v1",
                 timeout: float = 10.0, retries: int = 2, circuit: Optional[CircuitBreaker] = None,
                 backoff_base: float = DEFAULT_BACKOFF_BASE, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retries = retries
        self.backoff_base = backoff_base
        self.circuit = circuit or CircuitBreaker("stripe-checkout")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"Authorization": f"Bearer {self.secret_key}"},
                transport=self._transport,
            )
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def create_session(self, line_items: List[Dict[str, Any]], success_url: str, cancel_url: str,
                             client_reference_id: str, currency: str,
                             customer_email: Optional[str] = None) -> HostedSession:
        if not self.secret_key:
            raise PaymentProviderFailure("hosted payment provider is not configured")

        try:
            await self.circuit.before_call()
        except CircuitOpenError:
            logger.warning("payment.provider.circuit_open", extra={"order_id": client_reference_id})
            raise PaymentProviderFailure("payment provider unavailable, try again later")

        form = encode_session_form(line_items, success_url, cancel_url, client_reference_id, currency, customer_email)
        # same key on every retry so the provider never opens two sessions for one order
        headers = {"Idempotency-Key": f"checkout-session-{client_reference_id}"}

        try:
            data = await self._post_with_retry("/checkout/sessions", form, headers, client_reference_id)
        except PaymentProviderFailure:
            await self.circuit.after_call(False)
            raise
        await self.circuit.after_call(True)

        session_id = data.get("id")
        redirect_url = data.get("url")
        if not session_id or not redirect_url:
            raise PaymentProviderFailure("payment provider returned no redirect url")

        logger.info("payment.session.created", extra={"order_id": client_reference_id, "provider_session_id": session_id})
        return HostedSession(session_id=session_id, redirect_url=redirect_url)

    async def _post_with_retry(self, path: str, form: Dict[str, str], headers: Dict[str, str], ref: str) -> Dict[str, Any]:
        client = self._get_http_client()
        attempts = self.retries + 1

        for attempt_idx in range(1, attempts + 1):
            try:
                resp = await client.post(path, data=form, headers=headers)
                resp.raise_for_status()
                return resp.json()
            except TRANSIENT_EXCEPTIONS as ex:
                logger.warning("payment.provider.transient_error",
                               extra={"order_id": ref, "attempt": attempt_idx, "error": repr(ex)})
                if attempt_idx == attempts:
                    raise PaymentProviderFailure("payment provider unreachable") from ex
            except httpx.TimeoutException as ex:
                # request may have reached the provider; the idempotency key makes a manual retry safe
                logger.warning("payment.provider.timeout", extra={"order_id": ref, "attempt": attempt_idx})
                raise PaymentProviderFailure("payment provider timed out") from ex
            except httpx.HTTPStatusError as ex:
                status_code = ex.response.status_code
                logger.warning("payment.provider.http_error",
                               extra={"order_id": ref, "attempt": attempt_idx, "http_status": status_code,
                                      "body": ex.response.text[:500]})
                if status_code < 500 or attempt_idx == attempts:
                    raise PaymentProviderFailure(f"payment provider rejected the request ({status_code})") from ex
            except (httpx.HTTPError, ValueError) as ex:
                logger.error("payment.provider.bad_response", extra={"order_id": ref, "error": repr(ex)})
                raise PaymentProviderFailure("payment provider returned an invalid response") from ex

            await asyncio.sleep(min(self.backoff_base * (2 ** (attempt_idx - 1)), MAX_BACKOFF))

        raise PaymentProviderFailure("payment provider unreachable")


def build_payment_client() -> StripeCheckoutClient:
    circuit = CircuitBreaker(
        "stripe-checkout",
        failure_threshold=config_settings.PAYMENT_CIRCUIT_FAILURES,
        recovery_timeout=config_settings.PAYMENT_CIRCUIT_RECOVERY,
    )
    return StripeCheckoutClient(
        secret_key=config_settings.STRIPE_SECRET_KEY,
        base_url=config_settings.STRIPE_API_BASE,
        timeout=config_settings.PAYMENT_PROVIDER_TIMEOUT,
        retries=config_settings.PAYMENT_PROVIDER_RETRIES,
        circuit=circuit,
    )
