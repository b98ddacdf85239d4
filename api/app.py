"""Application wiring: config -> store -> ledger services -> FastAPI app."""

import logging
from datetime import date
from typing import Callable

from fastapi import FastAPI

from api.cycles import create_cycles_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from clients.record_store import RecordStore, open_record_store
from core.audit import AuditLogger
from core.config import LedgerConfig
from core.event_bus import EventBus
from core.services.ledger_service import BillingLedger
from core.services.renewal_service import RenewalService
from core.services.summary_service import BillingSummaryService

logger = logging.getLogger(__name__)


def build_services(
    config: LedgerConfig,
    store: RecordStore | None = None,
    clock: Callable[[], date] | None = None,
) -> dict:
    """
    Construct the service graph once at startup.

    Args:
        config: Ledger configuration
        store: Pre-built store (tests); opened from config when omitted
        clock: "Today" provider; defaults to the configured timezone's date
    """
    if store is None:
        store = open_record_store(config)

    audit = AuditLogger(store)
    event_bus = EventBus()
    ledger = BillingLedger(store, audit, event_bus, clock=clock or config.today)

    return {
        "store": store,
        "audit": audit,
        "event_bus": event_bus,
        "ledger": ledger,
        "renewal": RenewalService(ledger),
        "summary": BillingSummaryService(ledger, config.expiring_window_days),
    }


def create_app(config: LedgerConfig | None = None, services: dict | None = None) -> FastAPI:
    """FastAPI app with error handlers, request IDs and ledger routes."""
    if config is None:
        config = LedgerConfig.from_env()
    if services is None:
        services = build_services(config)

    app = FastAPI(title="ISP Billing Ledger")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_cycles_router(services), prefix="/api")
    app.state.services = services

    logger.info("Billing ledger API ready (store backend: %s)", config.store_backend.value)
    return app
