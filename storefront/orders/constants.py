import enum
from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.orders")


class PaymentPath(str, enum.Enum):
    MANUAL = "manual"
    HOSTED = "hosted"


IDEMPOTENCY_KEY_MAX_LEN = 128
