import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from rentdesk.core.config import settings, validate_config
from rentdesk.core.logging import configure_logging, log_event
from rentdesk.core.middleware.request_id import RequestIdMiddleware
from rentdesk.core.middleware.metrics import MetricsMiddleware
from rentdesk.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from rentdesk.core.database import create_all_tables
from rentdesk.api import entitlements, health, metrics, plans, subscription, usage
from rentdesk.features.backends.service import uses_hosted_backend
from rentdesk.features.plans.service import seed_plan_feature_limits

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("rentdesk")
    logger.info("Starting RentDesk entitlements service...")
    if not uses_hosted_backend():
        create_all_tables()
        seed_plan_feature_limits()
    log_event(
        "info",
        "service.started",
        event_type="startup",
        extra={
            "backend": settings.ENTITLEMENT_BACKEND,
            "ai_entitlement_mode": settings.AI_ENTITLEMENT_MODE,
            "zero_limit_policy": settings.AI_ZERO_LIMIT_POLICY,
        },
    )
    try:
        yield
    finally:
        logging.getLogger("rentdesk").info("Stopping RentDesk entitlements service...")


app = FastAPI(title="RentDesk - Entitlements", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(plans.router, tags=["plans"])
app.include_router(entitlements.router, tags=["entitlements"])
app.include_router(usage.router, tags=["usage"])
app.include_router(subscription.router, tags=["subscription"])
app.include_router(health.router, tags=["health"])
app.include_router(metrics.router, tags=["metrics"])
