from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from storefront import logger
from storefront.api import cur_version
from storefront.api.routers import public_routers,admin_routers
from storefront.background_workers.base_worker import NotificationWorker
from storefront.common.custom_exceptions import register_all_exceptions
from storefront.common.logging_setup import setup_logging, stop_logging
from storefront.config.admin_config import admin_config
from storefront.config.settings import config_settings
from storefront.db.connection import async_engine
from storefront.middlewares.request_id_middleware import RequestIdMiddleware
from storefront.notifications.mailer import build_mailer
from storefront.notifications.services import OrderNotifier
from storefront.payments.provider import build_payment_client


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()

    notifier = OrderNotifier(
        app.state.mailer,
        admin_to=config_settings.ORDER_NOTIFY_TO,
        timeout=config_settings.NOTIFICATION_TIMEOUT,
    )
    worker = NotificationWorker(
        notifier,
        workers_count=config_settings.NOTIFICATION_WORKERS,
        max_queue_size=config_settings.NOTIFICATION_QUEUE_SIZE,
    )
    await worker()
    app.state.notification_worker = worker
    logger.info("app.started", extra={"env": admin_config.ENV})

    try:
        yield
    finally:
        # new requests are no longer accepted here; let queued mail go out first
        await worker.shutdown(drain_timeout=config_settings.NOTIFICATION_TIMEOUT)
        await app.state.mailer.aclose()
        await app.state.payment_client.aclose()
        await async_engine.dispose()
        logger.info("app.stopped")
        stop_logging()


def create_app(mailer=None, payment_client=None):
    app=FastAPI(
        title="iSellComics Storefront",
        version=cur_version,
        lifespan=app_lifespan)

    # long-lived outbound clients, built once and handed to routes through dependencies
    app.state.mailer = mailer or build_mailer()
    app.state.payment_client = payment_client or build_payment_client()

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Session-Id", "Idempotency-Key", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    return app

app=create_app()
