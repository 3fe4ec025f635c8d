"""HTTP routers for the catalog API."""

from .books import router as books_router
from .dashboard import router as dashboard_router

__all__ = ["books_router", "dashboard_router"]
