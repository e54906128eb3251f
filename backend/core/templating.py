"""
Jinja2 template rendering.

Every page gets ``user`` (the logged-in identity or None) and ``csrf_token``
in its context, so forms only have to emit the hidden field.
"""

import html
from pathlib import Path

from fastapi import Request
from fastapi.templating import Jinja2Templates
from markupsafe import Markup, escape

# backend/core/templating.py  →  ../../templates
_TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates"

templates = Jinja2Templates(directory=str(_TEMPLATE_DIR))


def _truncate(text, length: int = 100) -> str:
    if text is None:
        return ""
    text = str(text)
    return text if len(text) <= length else text[:length] + "..."


def _truncate_escaped(text, length: int = 100) -> Markup:
    """Truncate a value stored HTML-escaped without splitting an entity."""
    if text is None:
        return Markup("")
    return escape(_truncate(html.unescape(str(text)), length))


def _format_date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else ""


templates.env.filters["truncate_text"] = _truncate
templates.env.filters["truncate_escaped"] = _truncate_escaped
templates.env.filters["format_date"] = _format_date


def render(request: Request, name: str, context: dict | None = None, status_code: int = 200):
    ctx = {
        "user": getattr(request.state, "viewer", None),
        "csrf_token": getattr(request.state, "csrf_token", ""),
    }
    ctx.update(context or {})
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)
