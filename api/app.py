"""
Application assembly.

create_app() wires already-built services into a FastAPI app; build_app()
builds the services from Vault-provided infrastructure and hands them over.
Serve with an ASGI server in factory mode, e.g. `uvicorn --factory api.app:build_app`.
"""

import logging
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.base import success_response, error_response, request_id_of, ErrorCodes
from api.customers import create_customers_router
from api.errors import register_error_handlers
from api.invoices import create_invoices_router
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.security_middleware import AuthMiddleware
from core.config import InvoiceConfig

logger = logging.getLogger(__name__)


def create_app(
    invoice_service,
    customer_service,
    auth_service,
    session_manager,
    invoice_config: InvoiceConfig | None = None,
    health_checks: dict[str, Callable[[], object]] | None = None,
) -> FastAPI:
    """FastAPI app with auth middleware, error handlers and all routers."""
    invoice_config = invoice_config or InvoiceConfig()
    health_checks = health_checks or {}

    app = FastAPI(title="Invoicer")
    # Last added runs first: request IDs are assigned before auth rejects anything.
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service))
    app.include_router(create_invoices_router(invoice_service, invoice_config.default_page_size))
    app.include_router(create_customers_router(customer_service))

    @app.get("/health", tags=["health"])
    async def health(request: Request):
        failed = []
        for name, check in health_checks.items():
            try:
                check()
            except Exception:
                logger.exception("Health check %s failed", name)
                failed.append(name)

        if failed:
            return JSONResponse(
                status_code=503,
                content=error_response(
                    ErrorCodes.INTERNAL_ERROR,
                    f"Unhealthy: {', '.join(failed)}",
                    request_id_of(request),
                ).model_dump(mode="json"),
            )

        return success_response({"status": "ok"}, request_id_of(request)).model_dump(mode="json")

    return app


def build_app() -> FastAPI:
    """Build every collaborator from Vault secrets and assemble the app."""
    from auth.config import AuthConfig
    from auth.database import AuthDatabase
    from auth.rate_limiter import RateLimiter
    from auth.security_logger import SecurityLogger
    from auth.service import AuthService
    from auth.session import SessionManager
    from clients.email_client import EmailGatewayClient
    from clients.postgres_client import PostgresClient
    from clients.valkey_client import ValkeyClient
    from clients.vault_client import get_database_url, get_email_config, get_valkey_url
    from core.audit import AuditLogger
    from core.event_bus import EventBus
    from core.handlers.invoice_counter_handler import handle_invoice_created, handle_invoice_deleted
    from core.handlers.invoice_sent_handler import handle_invoice_sent
    from core.repositories import PostgresCustomerRepository, PostgresInvoiceRepository
    from core.services.customer_service import CustomerService
    from core.services.invoice_service import InvoiceService

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    auth_config = AuthConfig()
    invoice_config = InvoiceConfig()

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    email_client = EmailGatewayClient(**get_email_config())

    auth_db = AuthDatabase(postgres, free_plan_limit=invoice_config.free_plan_max_invoices)
    session_manager = SessionManager(valkey, auth_config)
    auth_service = AuthService(
        config=auth_config,
        auth_db=auth_db,
        session_manager=session_manager,
        email_limiter=RateLimiter.for_magic_links(valkey, auth_config),
        enumeration_limiter=RateLimiter.for_enumeration(valkey, auth_config),
        email_client=email_client,
        security_logger=SecurityLogger(postgres),
    )

    event_bus = EventBus()
    event_bus.subscribe("InvoiceCreated", handle_invoice_created(auth_db))
    event_bus.subscribe("InvoiceDeleted", handle_invoice_deleted(auth_db))
    event_bus.subscribe("InvoiceSent", handle_invoice_sent(email_client, auth_config.app_name))

    audit = AuditLogger(postgres)
    invoices = PostgresInvoiceRepository(postgres)
    customers = PostgresCustomerRepository(postgres)

    return create_app(
        invoice_service=InvoiceService(invoices, customers, auth_db, audit, event_bus, invoice_config),
        customer_service=CustomerService(customers, invoices, audit),
        auth_service=auth_service,
        session_manager=session_manager,
        invoice_config=invoice_config,
        health_checks={
            "postgres": lambda: postgres.execute_scalar("SELECT 1"),
            "valkey": valkey.ping,
        },
    )
