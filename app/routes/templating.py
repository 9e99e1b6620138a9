"""
Shared Jinja2 setup for HTML routes.
"""

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from ..dependencies import get_session_manager

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


# Add custom Jinja2 filters
def format_datetime(value):
    """Format datetime for display."""
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M')
    return "" if value is None else str(value)


def format_date(value):
    """Format datetime as a date input value."""
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d')
    return "" if value is None else str(value)


def format_money(value):
    if value is None or value == "":
        return "-"
    try:
        amount = Decimal(str(value))
    except ArithmeticError:
        return str(value)
    # Show stored prices exactly, padding to cents
    if amount.as_tuple().exponent >= -2:
        return str(amount.quantize(Decimal("0.01")))
    return str(amount)


templates.env.filters['format_datetime'] = format_datetime
templates.env.filters['format_date'] = format_date
templates.env.filters['money'] = format_money


def render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200):
    """Render a template, consuming any pending flash message."""
    session_manager = get_session_manager()
    flash = session_manager.read_flash(request)

    response = templates.TemplateResponse(
        request,
        name,
        {**(context or {}), "flash": flash},
        status_code=status_code
    )
    if flash:
        session_manager.clear_flash(response)
    return response


def redirect(url: str, message: Optional[str] = None, category: str = "info") -> RedirectResponse:
    """Redirect after a form post, optionally with a flash message."""
    response = RedirectResponse(url=url, status_code=303)
    if message:
        get_session_manager().flash(response, message, category)
    return response
