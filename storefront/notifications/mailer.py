from typing import Optional
import httpx
from storefront.common.logging_setup import mask_value
from storefront.config.settings import config_settings
from storefront.notifications.constants import logger


class SendGridMailer:
    """Plain-text transactional mail through the SendGrid v3 API."""

    def __init__(self, api_key: str, from_email: str, base_url: str = "https://api.sendgrid.com/v3",
                 timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                transport=self._transport,
            )
        return self._http_client

    async def aclose(self):
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def send(self, to: str, subject: str, text: str):
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/plain", "value": text}],
        }
        http = self._get_http_client()
        resp = await http.post(f"{self.base_url}/mail/send", json=payload)
        resp.raise_for_status()
        return resp.headers.get("X-Message-Id")


class LogMailer:
    """Used when no mail API key is configured (local dev): the message is only logged."""

    async def send(self, to: str, subject: str, text: str):
        # body carries customer contact details, only its size is logged
        logger.info("mail.logged", extra={"to": mask_value("email", to), "subject": subject, "body_chars": len(text)})
        return None

    async def aclose(self):
        return None


def build_mailer():
    if not config_settings.SENDGRID_API_KEY:
        logger.warning("mail.disabled", extra={"reason": "SENDGRID_API_KEY not set"})
        return LogMailer()
    return SendGridMailer(
        api_key=config_settings.SENDGRID_API_KEY,
        from_email=config_settings.MAIL_FROM,
        base_url=config_settings.SENDGRID_API_BASE,
        timeout=config_settings.NOTIFICATION_TIMEOUT,
    )
