"""
FastAPI dependency injection.
Database, Shopify client and session management, created once per process.
"""

from typing import Optional
from fastapi import Request, HTTPException

from .config import settings
from .db import SQLiteDatabase
from .auth import SessionManager
from .shopify import ShopifyClient


# Global instances (initialized on startup)
_db: Optional[SQLiteDatabase] = None
_session_manager: Optional[SessionManager] = None
_shopify_client: Optional[ShopifyClient] = None


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _db, _session_manager, _shopify_client

    _db = SQLiteDatabase(settings.database_path)
    await _db.initialize()

    _session_manager = SessionManager(settings.session_secret, secure=settings.session_cookie_secure)

    _shopify_client = ShopifyClient.from_settings(settings)


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    global _db, _shopify_client
    if _shopify_client:
        await _shopify_client.close()
        _shopify_client = None
    if _db:
        await _db.close()
        _db = None


def get_db() -> SQLiteDatabase:
    """Get the database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not initialized")
    return _session_manager


def get_shopify_client() -> ShopifyClient:
    """Get the Shopify client for the configured store."""
    if _shopify_client is None:
        raise RuntimeError("Shopify client not initialized")
    return _shopify_client


async def require_auth(request: Request):
    """
    Dependency that requires authentication.
    Redirects to login if not authenticated.
    """
    session_manager = get_session_manager()

    if not session_manager.is_authenticated(request):
        if request.url.path.startswith("/api/"):
            raise HTTPException(status_code=401, detail="Not authenticated")
        raise HTTPException(status_code=307, headers={"Location": "/login"})


def check_auth(request: Request) -> bool:
    """Check if user is authenticated (without raising exception)."""
    session_manager = get_session_manager()
    return session_manager.is_authenticated(request)
