"""FastAPI endpoints for browsing remote threads."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict
from urllib.parse import quote

from fastapi import FastAPI, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from . import __version__
from .config import ThreadConfig
from .errors import ThreadError
from .html_sanitizer import is_safe_url
from .models import ThreadNode
from .thread import load_thread

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

app = FastAPI(title="fedithread", version=__version__)
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def _safe_href(value: Any) -> str:
    if isinstance(value, str) and is_safe_url(value):
        return value
    return "#"


templates.env.filters["safe_href"] = _safe_href


class ThreadRequest(BaseModel):
    url: str
    max_pages: int | None = Field(None, ge=1)


def _create_config(max_pages: int | None = None) -> ThreadConfig:
    """Create a :class:`ThreadConfig` using :meth:`ThreadConfig.from_env`."""
    config = ThreadConfig.from_env()
    if max_pages is not None:
        config.max_pages = max_pages
    return config


async def _load(url: str, max_pages: int | None = None) -> ThreadNode:
    return await load_thread(url, config=_create_config(max_pages))


def _error_page(request: Request, status_code: int, message: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "error.html", {"error": message}, status_code=status_code
    )


@app.get("/", response_class=HTMLResponse)
async def index(request: Request) -> HTMLResponse:
    """Show the form asking for a post URL."""
    return templates.TemplateResponse(request, "index.html", {})


@app.post("/")
async def submit(url: str = Form(...)) -> RedirectResponse:
    return RedirectResponse(f"/thread?url={quote(url, safe='')}", status_code=303)


@app.get("/thread", response_class=HTMLResponse)
async def thread_page(
    request: Request,
    url: str | None = Query(None),
    max_pages: int | None = Query(None, ge=1),
) -> HTMLResponse:
    """Render the thread rooted at ``url`` as HTML."""
    if not url:
        return _error_page(request, 404, "No URL provided")
    try:
        thread = await _load(url, max_pages)
    except ThreadError as exc:
        logging.warning("Failed to load thread %s: %s", url, exc)
        return _error_page(request, 500, str(exc))
    return templates.TemplateResponse(
        request, "thread.html", {"thread": thread, "root_url": url}
    )


async def _thread_payload(url: str, max_pages: int | None) -> Dict[str, Any]:
    try:
        thread = await _load(url, max_pages)
    except ThreadError as exc:
        logging.warning("Failed to load thread %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return thread.to_dict()


@app.get("/api/thread")
async def thread_json(
    url: str = Query(...),
    max_pages: int | None = Query(None, ge=1),
) -> Dict[str, Any]:
    """Return the thread rooted at ``url`` as JSON."""
    return await _thread_payload(url, max_pages)


@app.post("/api/thread")
async def thread_json_post(req: ThreadRequest) -> Dict[str, Any]:
    return await _thread_payload(req.url, req.max_pages)
