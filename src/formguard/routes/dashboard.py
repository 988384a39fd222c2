from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from formguard.auth import CurrentUser, require_user
from formguard.errors import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


def with_notice(path: str, notice: str, level: str = "success") -> str:
    return f"{path}?{urlencode({'notice': notice, 'level': level})}"


def notices_from_query(request: Request) -> list[dict[str, str]]:
    notice = request.query_params.get("notice")
    if not notice:
        return []
    level = request.query_params.get("level", "success")
    return [{"level": level if level in {"success", "error"} else "success", "text": notice}]


def public_link(request: Request, form_id: str) -> str:
    return str(request.url_for("public_form", form_id=form_id))


@router.get("/", response_class=HTMLResponse, tags=["dashboard"])
async def home(request: Request) -> RedirectResponse:
    return RedirectResponse("/dashboard")


@router.get("/dashboard", response_class=HTMLResponse, tags=["dashboard"])
async def dashboard(
    request: Request, user: CurrentUser = Depends(require_user)
) -> HTMLResponse:
    storage = request.app.state.storage
    templates = request.app.state.templates
    notices = notices_from_query(request)
    forms: list[dict[str, Any]] = []
    try:
        for form in storage.forms.list_forms(user.id):
            forms.append(
                {
                    **form,
                    "response_count": storage.responses.count_responses(form["id"]),
                    "public_link": public_link(request, form["id"]),
                }
            )
    except StorageError:
        logger.exception("Failed to load dashboard for %s", user.id)
        notices.append({"level": "error", "text": "Failed to load dashboard data"})

    stats = {
        "total_forms": len(forms),
        "published_forms": sum(1 for form in forms if form["is_published"]),
        "total_responses": sum(form["response_count"] for form in forms),
    }
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"user": user, "forms": forms, "stats": stats, "notices": notices},
    )


@router.post("/forms/{form_id}/delete", tags=["dashboard"])
async def delete_form(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> RedirectResponse:
    storage = request.app.state.storage
    try:
        storage.forms.delete_form(form_id, owner_id=user.id)
    except StorageError:
        logger.exception("Failed to delete form %s", form_id)
        return RedirectResponse(
            with_notice("/dashboard", "Failed to delete form", "error"), status_code=303
        )
    logger.info("Form deleted: %s by %s", form_id, user.id)
    return RedirectResponse(with_notice("/dashboard", "Form deleted successfully"), status_code=303)


@router.post("/auth/sign-out", tags=["dashboard"])
async def sign_out(
    request: Request, user: CurrentUser = Depends(require_user)
) -> RedirectResponse:
    request.app.state.sessions.end(user.id)
    return RedirectResponse("/dashboard", status_code=303)
