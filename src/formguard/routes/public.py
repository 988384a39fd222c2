from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from formguard.auth import CurrentUser, respondent
from formguard.errors import AccessDenied, NotFoundError, PolicyViolation, StorageError
from formguard.submission import collect_answers, needs_identity, submit_response
from formguard.utils import now_utc, to_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def get_published_form(request: Request, form_id: str) -> dict[str, Any]:
    # The public URL never shows drafts, not even to their owner.
    form = request.app.state.storage.forms.get_form(form_id)
    if form is None or not form.get("is_published"):
        raise NotFoundError("Form not found or is not published")
    return form


def render_viewer(
    request: Request,
    form: dict[str, Any],
    user: CurrentUser | None,
    answers: dict[str, Any] | None = None,
    errors: dict[str, str] | None = None,
    notices: list[dict[str, str]] | None = None,
    started_at: str | None = None,
    tab_switches: Any = 0,
    status_code: int = 200,
) -> HTMLResponse:
    templates = request.app.state.templates
    settings = form.get("settings") or {}
    notices = list(notices or [])
    blocked = bool(settings.get("require_auth")) and user is None
    if blocked and not notices:
        notices.append({"level": "error", "text": "Please sign in to respond to this form"})
    return templates.TemplateResponse(
        request,
        "form_public.html",
        {
            "user": user,
            "form": form,
            "fields": form.get("fields") or [],
            "answers": answers or {},
            "errors": errors or {},
            "notices": notices,
            "ask_identity": needs_identity(form, user.id if user else None),
            "blocked": blocked,
            "started_at": started_at or to_iso(now_utc()),
            "tab_switches": tab_switches,
        },
        status_code=status_code,
    )


@router.get("/form/{form_id}", response_class=HTMLResponse, tags=["public"])
async def public_form(
    request: Request, form_id: str, user: CurrentUser | None = Depends(respondent)
) -> HTMLResponse:
    form = get_published_form(request, form_id)
    return render_viewer(request, form, user)


@router.post("/form/{form_id}", response_class=HTMLResponse, tags=["public"])
async def submit_form(
    request: Request, form_id: str, user: CurrentUser | None = Depends(respondent)
) -> HTMLResponse:
    storage = request.app.state.storage
    templates = request.app.state.templates
    form = get_published_form(request, form_id)
    user_id = user.id if user else None

    form_data = await request.form()
    fields = form.get("fields") or []
    answers = collect_answers(
        fields, form_data, include_identity=needs_identity(form, user_id)
    )
    started_at = str(form_data.get("started_at") or "") or None
    tab_switches = form_data.get("tab_switches", 0)
    state = {"answers": answers, "started_at": started_at, "tab_switches": tab_switches}

    try:
        response, errors = submit_response(
            storage,
            form,
            answers,
            started_at,
            user_agent=request.headers.get("user-agent", ""),
            user_id=user_id,
            tab_switches=tab_switches,
        )
    except PolicyViolation:
        raise NotFoundError("Form not found or is not published")
    except AccessDenied as exc:
        notices = [{"level": "error", "text": str(exc)}]
        return render_viewer(request, form, user, notices=notices, status_code=403, **state)
    except StorageError:
        logger.exception("Failed to submit response for form %s", form_id)
        notices = [
            {"level": "error", "text": "Failed to submit your response. Please try again."}
        ]
        return render_viewer(request, form, user, notices=notices, status_code=503, **state)

    if errors:
        notices = [{"level": "error", "text": "Please fill in all required fields"}]
        return render_viewer(
            request, form, user, errors=errors, notices=notices, status_code=422, **state
        )

    return templates.TemplateResponse(
        request,
        "submission_done.html",
        {"user": user, "form": form, "response": response},
    )
