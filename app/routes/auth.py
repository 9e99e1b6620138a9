"""
Authentication routes - login/logout.
"""

import asyncio
import logging
import time
from collections import defaultdict
from fastapi import APIRouter, Request, Form
from fastapi.responses import HTMLResponse, RedirectResponse

from ..config import settings
from ..dependencies import get_session_manager, check_auth
from ..auth import verify_password
from .templating import render

logger = logging.getLogger(__name__)

router = APIRouter()

# Brute force protection: track failed login attempts by IP
failed_attempts = defaultdict(list)
LOCKOUT_THRESHOLD = 5  # Lock after 5 failed attempts
LOCKOUT_DURATION = 300  # 5 minutes in seconds


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, error: str = None):
    """Show login page."""
    if check_auth(request):
        return RedirectResponse(url="/offers", status_code=303)

    return render(request, "login.html", {"error": error})


@router.post("/login")
async def login(request: Request, password: str = Form(...)):
    """Handle login form submission with brute force protection."""
    session_manager = get_session_manager()
    client_ip = request.client.host if request.client else "unknown"
    current_time = time.time()

    # Forget attempts older than the lockout window
    failed_attempts[client_ip] = [
        attempt_time for attempt_time in failed_attempts[client_ip]
        if current_time - attempt_time < LOCKOUT_DURATION
    ]

    if len(failed_attempts[client_ip]) >= LOCKOUT_THRESHOLD:
        remaining = int(LOCKOUT_DURATION - (current_time - failed_attempts[client_ip][0]))
        logger.warning(f"Login locked out for {client_ip}")
        return render(
            request,
            "login.html",
            {"error": f"Too many failed attempts. Try again in {remaining} seconds."},
            status_code=429
        )

    if settings.admin_password_hash and verify_password(password, settings.admin_password_hash):
        failed_attempts[client_ip] = []
        response = RedirectResponse(url="/offers", status_code=303)
        session_manager.create_session(response)
        return response

    failed_attempts[client_ip].append(current_time)
    logger.info(f"Failed login from {client_ip} ({len(failed_attempts[client_ip])} recent)")

    # Slow down brute force, more with each attempt
    await asyncio.sleep(min(len(failed_attempts[client_ip]) * 0.5, 3))

    return render(request, "login.html", {"error": "Invalid password"}, status_code=401)


@router.post("/logout")
async def logout(request: Request):
    """Handle logout."""
    session_manager = get_session_manager()
    response = RedirectResponse(url="/login", status_code=303)
    session_manager.clear_session(response)
    return response


@router.get("/logout")
async def logout_get(request: Request):
    """Handle logout via GET."""
    return await logout(request)
