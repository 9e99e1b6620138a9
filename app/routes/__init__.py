"""
Routes package.
"""

from .auth import router as auth_router
from .offers import router as offers_router
from .api import router as api_router
from .sample_csv import router as sample_csv_router
from .webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "offers_router",
    "api_router",
    "sample_csv_router",
    "webhooks_router",
]
