"""
API Version 1 Router.

Aggregates the dashboard endpoint routers. Mounted under the api_prefix
of application.yaml.
"""

from fastapi import APIRouter

from crm.backend.api.v1.endpoints import (
    auth,
    clients,
    gocardless,
    invoices,
    quotes,
    settings,
    treasury,
    users,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(clients.router, prefix="/clients", tags=["clients"])
router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
router.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
router.include_router(settings.router, prefix="/settings", tags=["settings"])
router.include_router(treasury.router, prefix="/treasury", tags=["treasury"])
router.include_router(gocardless.router, prefix="/gocardless", tags=["gocardless"])
router.include_router(users.router, prefix="/users", tags=["users"])
