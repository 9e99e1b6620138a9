"""
Cookie-based session management and one-shot flash messages.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, Response
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


# Session duration: 24 hours
SESSION_MAX_AGE = 24 * 60 * 60  # seconds
SESSION_COOKIE_NAME = "session"
FLASH_COOKIE_NAME = "flash"
FLASH_MAX_AGE = 60  # seconds


class SessionManager:
    """Manages signed cookie-based sessions for the single admin user."""

    def __init__(self, secret_key: str, secure: bool = False):
        """
        Initialize session manager.

        Args:
            secret_key: Secret key for signing cookies
            secure: Send cookies over HTTPS only
        """
        self._serializer = URLSafeTimedSerializer(secret_key, salt="session")
        self._flash_serializer = URLSafeTimedSerializer(secret_key, salt="flash")
        self.secure = secure

    def create_session(self, response: Response, user_id: str = "admin") -> None:
        """Sign the session data and set the cookie."""
        session_data = {
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=self._serializer.dumps(session_data),
            max_age=SESSION_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )

    def get_session(self, request: Request) -> Optional[dict]:
        """
        Get session data from request cookie.

        Returns:
            Session data dict or None if invalid/expired
        """
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None

        try:
            return self._serializer.loads(token, max_age=SESSION_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return None

    def clear_session(self, response: Response) -> None:
        response.delete_cookie(
            key=SESSION_COOKIE_NAME,
            httponly=True,
            samesite="lax",
        )

    def is_authenticated(self, request: Request) -> bool:
        return self.get_session(request) is not None

    def flash(self, response: Response, message: str, category: str = "info") -> None:
        """
        Attach a message to show on the next page the browser loads.

        Args:
            response: Usually the redirect after a form post
            message: Text to display
            category: "info", "success" or "error"
        """
        response.set_cookie(
            key=FLASH_COOKIE_NAME,
            value=self._flash_serializer.dumps({"message": message, "category": category}),
            max_age=FLASH_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )

    def read_flash(self, request: Request) -> Optional[dict]:
        """Flash message from the request, if any. Pair with `clear_flash`."""
        token = request.cookies.get(FLASH_COOKIE_NAME)
        if not token:
            return None

        try:
            return self._flash_serializer.loads(token, max_age=FLASH_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return None

    def clear_flash(self, response: Response) -> None:
        response.delete_cookie(key=FLASH_COOKIE_NAME, httponly=True, samesite="lax")
