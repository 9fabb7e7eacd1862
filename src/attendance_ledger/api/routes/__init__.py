"""API routes."""

from attendance_ledger.api.routes.expenses import router as expenses_router
from attendance_ledger.api.routes.health import router as health_router
from attendance_ledger.api.routes.ledgers import router as ledgers_router

__all__ = ["expenses_router", "health_router", "ledgers_router"]
