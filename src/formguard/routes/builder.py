from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from formguard.auth import CurrentUser, require_user
from formguard.builder import FormBuilder
from formguard.config import FIELD_TYPES
from formguard.errors import StorageError
from formguard.fields import FIELD_TYPE_LABELS, is_choice_type, is_text_type
from formguard.policy import require_owner
from formguard.routes.dashboard import notices_from_query, with_notice
from formguard.utils import dumps_json, loads_json

logger = logging.getLogger(__name__)

router = APIRouter()

SETTING_FLAGS = ("allow_multiple_submissions", "require_auth", "collect_identity")


def _load_previous_fields(raw: Any) -> list[dict[str, Any]]:
    try:
        fields = loads_json(str(raw or "")) or []
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed builder state")
    if not isinstance(fields, list):
        raise HTTPException(status_code=400, detail="Malformed builder state")
    return fields


def builder_from_post(form_data: Any, form_id: str | None) -> FormBuilder:
    """Rebuild the builder state the page was showing, then apply its inputs.

    ``fields_json`` holds the fields as they were rendered; the per-field
    inputs carry the user's edits since then.
    """
    settings: dict[str, Any] = {flag: f"settings.{flag}" in form_data for flag in SETTING_FLAGS}
    settings["theme"] = {
        "primary_color": str(form_data.get("settings.theme.primary_color") or "#3b82f6"),
        "background_color": str(
            form_data.get("settings.theme.background_color") or "#ffffff"
        ),
    }
    try:
        builder = FormBuilder(
            form_id=form_id,
            title=str(form_data.get("title", "")),
            description=str(form_data.get("description", "")),
            fields=_load_previous_fields(form_data.get("fields_json")),
            settings=settings,
            is_published=bool(form_id) and "is_published" in form_data,
        )
        for field in list(builder.fields):
            field_id = field["id"]
            if f"{field_id}.label" not in form_data:
                continue
            updates: dict[str, Any] = {
                "label": str(form_data.get(f"{field_id}.label", "")),
                "required": f"{field_id}.required" in form_data,
            }
            if is_text_type(field["type"]):
                updates["placeholder"] = str(form_data.get(f"{field_id}.placeholder", ""))
            if is_choice_type(field["type"]):
                updates["options"] = [str(v) for v in form_data.getlist(f"{field_id}.options")]
            builder.update_field(field_id, updates)
            new_type = str(form_data.get(f"{field_id}.type") or field["type"])
            if new_type != field["type"]:
                builder.update_field(field_id, {"type": new_type})
    except (KeyError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return builder


def apply_action(builder: FormBuilder, action: str) -> None:
    name, _, rest = action.partition(":")
    if name == "add_field":
        builder.add_field()
    elif name == "remove":
        builder.remove_field(rest)
    elif name == "move":
        field_id, _, direction = rest.rpartition(":")
        if direction in {"up", "down"}:
            builder.move_field(field_id, direction)
    elif name == "add_option":
        builder.add_option(rest)
    elif name == "remove_option":
        field_id, _, index = rest.rpartition(":")
        if index.isdigit():
            builder.remove_option(field_id, int(index))


def render_builder(
    request: Request,
    builder: FormBuilder,
    user: CurrentUser,
    notices: list[dict[str, str]] | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "form_builder.html",
        {
            "user": user,
            "builder": builder,
            "fields_json": dumps_json(builder.fields),
            "field_types": [(value, FIELD_TYPE_LABELS[value]) for value in FIELD_TYPES],
            "notices": notices or [],
        },
        status_code=status_code,
    )


async def handle_builder_post(
    request: Request, user: CurrentUser, form_id: str | None
) -> Response:
    storage = request.app.state.storage
    form_data = await request.form()
    builder = builder_from_post(form_data, form_id)
    action = str(form_data.get("action", ""))

    if action not in {"save", "publish"}:
        apply_action(builder, action)
        return render_builder(request, builder, user)

    errors = builder.check()
    if errors:
        notices = [{"level": "error", "text": message} for message in errors]
        return render_builder(request, builder, user, notices, status_code=422)

    is_new = not form_id
    try:
        form = builder.save(storage, user.id, publish=action == "publish")
    except StorageError:
        logger.exception("Failed to save form %s", form_id or "(new)")
        notices = [{"level": "error", "text": "Failed to save form"}]
        return render_builder(request, builder, user, notices, status_code=503)

    message = f"Form {'created' if is_new else 'updated'} successfully!"
    return RedirectResponse(with_notice(f"/edit/{form['id']}", message), status_code=303)


@router.get("/create", response_class=HTMLResponse, tags=["builder"])
async def new_form(request: Request, user: CurrentUser = Depends(require_user)) -> HTMLResponse:
    return render_builder(request, FormBuilder(), user, notices_from_query(request))


@router.post("/create", response_class=HTMLResponse, tags=["builder"])
async def create_form(request: Request, user: CurrentUser = Depends(require_user)) -> Response:
    return await handle_builder_post(request, user, None)


@router.get("/edit/{form_id}", response_class=HTMLResponse, tags=["builder"])
async def edit_form(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> HTMLResponse:
    storage = request.app.state.storage
    form = require_owner(storage.forms.get_form(form_id), user.id)
    return render_builder(request, FormBuilder.from_form(form), user, notices_from_query(request))


@router.post("/edit/{form_id}", response_class=HTMLResponse, tags=["builder"])
async def update_form(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> Response:
    storage = request.app.state.storage
    require_owner(storage.forms.get_form(form_id), user.id)
    return await handle_builder_post(request, user, form_id)
