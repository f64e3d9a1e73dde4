from storefront.common.logging_setup import get_logger

logger = get_logger("storefront.catalog")

RECENT_DEFAULT_LIMIT = 8
RECENT_MAX_LIMIT = 50
