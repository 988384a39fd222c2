from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import markupsafe
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from formguard.auth import SIGNED_IN, Identity, SessionEvents, get_auth_provider
from formguard.config import BASE_DIR, Settings
from formguard.errors import AccessDenied, NotFoundError, StorageError
from formguard.fields import field_type_label, field_widget
from formguard.routes.api import router as api_router
from formguard.routes.builder import router as builder_router
from formguard.routes.dashboard import router as dashboard_router
from formguard.routes.public import router as public_router
from formguard.routes.responses import router as responses_router
from formguard.storage import init_storage
from formguard.utils import ensure_aware

logger = logging.getLogger(__name__)


def format_dt(value: Any) -> str:
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone().strftime("%Y-%m-%d %H:%M")
    return str(value or "")


def _wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    storage = init_storage(settings)
    sessions = SessionEvents()

    def _on_session_event(event: str, identity: Identity) -> None:
        if event == SIGNED_IN:
            storage.users.handle_new_user(identity.id, identity.email, identity.metadata)

    sessions.subscribe(_on_session_event)

    app = FastAPI(
        title="FormGuard",
        openapi_tags=[
            {"name": "dashboard", "description": "Owner screens (HTML)"},
            {"name": "builder", "description": "Form builder (HTML)"},
            {"name": "public", "description": "Published forms (HTML)"},
            {"name": "api/forms", "description": "REST API: forms"},
            {"name": "api/responses", "description": "REST API: responses"},
            {"name": "system", "description": "System"},
        ],
    )

    app.state.storage = storage
    app.state.settings = settings
    app.state.auth_provider = get_auth_provider(settings)
    app.state.sessions = sessions

    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    app.state.templates = templates

    templates.env.globals["field_widget"] = field_widget
    templates.env.globals["field_type_label"] = field_type_label
    templates.env.globals["format_dt"] = format_dt

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
        if _wants_json(request):
            return JSONResponse({"detail": str(exc)}, status_code=404)
        return templates.TemplateResponse(
            request, "form_not_found.html", {"user": None}, status_code=404
        )

    @app.exception_handler(AccessDenied)
    async def access_denied_handler(request: Request, exc: AccessDenied) -> Response:
        if _wants_json(request):
            return JSONResponse({"detail": str(exc)}, status_code=403)
        return HTMLResponse(f"<h1>Forbidden</h1><p>{markupsafe.escape(str(exc))}</p>", 403)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> Response:
        logger.error("Request failed on store error: %s %s", request.method, request.url.path)
        if _wants_json(request):
            return JSONResponse({"detail": "Storage unavailable"}, status_code=503)
        return HTMLResponse("<h1>Service unavailable</h1><p>Please try again later.</p>", 503)

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(dashboard_router)
    app.include_router(builder_router)
    app.include_router(public_router)
    app.include_router(responses_router)
    app.include_router(api_router)

    return app
