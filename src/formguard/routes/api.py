from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from formguard.auth import CurrentUser, current_user, require_user, respondent
from formguard.builder import FormBuilder
from formguard.config import merge_settings
from formguard.errors import NotFoundError, PolicyViolation
from formguard.fields import normalize_fields
from formguard.policy import require_owner, require_readable
from formguard.routes.public import get_published_form
from formguard.schema import (
    FORM_PAYLOAD_SCHEMA,
    RESPONSE_PAYLOAD_SCHEMA,
    answer_shape_errors,
    payload_errors,
)
from formguard.submission import submit_response
from formguard.utils import new_field_id, to_iso

logger = logging.getLogger(__name__)

router = APIRouter()


def sanitize_form_output(form: dict[str, Any], include_owner: bool = True) -> dict[str, Any]:
    output = {
        "id": form["id"],
        "title": form.get("title", ""),
        "description": form.get("description", ""),
        "fields": form.get("fields", []),
        "settings": form.get("settings", {}),
        "is_published": bool(form.get("is_published")),
        "created_at": to_iso(form["created_at"]),
        "updated_at": to_iso(form["updated_at"]),
    }
    if include_owner:
        output["owner_id"] = form.get("owner_id")
    return output


def sanitize_response_output(response: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": response["id"],
        "form_id": response["form_id"],
        "user_id": response.get("user_id"),
        "answers": response.get("answers", {}),
        "metadata": response.get("metadata", {}),
        "submitted_at": to_iso(response["submitted_at"]),
    }


async def read_payload(request: Request, schema: dict[str, Any]) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    errors = payload_errors(schema, payload)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    return payload


def prepare_fields(raw_fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    fields = [{**field, "id": field.get("id") or new_field_id()} for field in raw_fields]
    ids = [field["id"] for field in fields]
    if len(ids) != len(set(ids)):
        raise HTTPException(status_code=400, detail="Field ids must be unique")
    return fields


@router.get("/api/forms", tags=["api/forms"])
async def api_list_forms(
    request: Request, user: CurrentUser = Depends(require_user)
) -> JSONResponse:
    storage = request.app.state.storage
    forms = storage.forms.list_forms(user.id)
    return JSONResponse(
        [
            {
                **sanitize_form_output(form),
                "response_count": storage.responses.count_responses(form["id"]),
            }
            for form in forms
        ]
    )


@router.post("/api/forms", tags=["api/forms"])
async def api_create_form(
    request: Request, user: CurrentUser = Depends(require_user)
) -> JSONResponse:
    storage = request.app.state.storage
    payload = await read_payload(request, FORM_PAYLOAD_SCHEMA)
    builder = FormBuilder(
        title=str(payload.get("title", "")).strip(),
        description=str(payload.get("description") or "").strip(),
        fields=prepare_fields(payload.get("fields") or []),
        settings=payload.get("settings"),
    )
    errors = builder.check()
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    form = builder.save(storage, user.id, publish=bool(payload.get("is_published")))
    return JSONResponse(sanitize_form_output(form), status_code=201)


@router.get("/api/forms/{form_id}", tags=["api/forms"])
async def api_get_form(
    request: Request, form_id: str, user: CurrentUser | None = Depends(current_user)
) -> JSONResponse:
    storage = request.app.state.storage
    form = require_readable(storage.forms.get_form(form_id), user.id if user else None)
    return JSONResponse(sanitize_form_output(form))


@router.put("/api/forms/{form_id}", tags=["api/forms"])
async def api_update_form(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> JSONResponse:
    storage = request.app.state.storage
    form = require_owner(storage.forms.get_form(form_id), user.id)
    payload = await read_payload(request, FORM_PAYLOAD_SCHEMA)
    builder = FormBuilder.from_form(form)
    if "title" in payload:
        builder.title = str(payload["title"]).strip()
    if "description" in payload:
        builder.description = str(payload["description"] or "").strip()
    if "fields" in payload:
        builder.fields = normalize_fields(prepare_fields(payload["fields"]))
    if "settings" in payload:
        builder.settings = merge_settings(payload["settings"])
    if "is_published" in payload:
        builder.is_published = bool(payload["is_published"])
    errors = builder.check()
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    updated = builder.save(storage, user.id)
    return JSONResponse(sanitize_form_output(updated))


@router.delete("/api/forms/{form_id}", tags=["api/forms"])
async def api_delete_form(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> JSONResponse:
    storage = request.app.state.storage
    storage.forms.delete_form(form_id, owner_id=user.id)
    logger.info("Form deleted: %s by %s", form_id, user.id)
    return JSONResponse({"deleted": form_id})


@router.get("/api/forms/{form_id}/responses", tags=["api/responses"])
async def api_list_responses(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> JSONResponse:
    storage = request.app.state.storage
    require_owner(storage.forms.get_form(form_id), user.id)
    responses = storage.responses.list_responses(form_id)
    return JSONResponse([sanitize_response_output(item) for item in responses])


@router.get("/api/public/forms/{form_id}", tags=["api/forms"])
async def api_public_form(request: Request, form_id: str) -> JSONResponse:
    form = get_published_form(request, form_id)
    return JSONResponse(sanitize_form_output(form, include_owner=False))


@router.post("/api/public/forms/{form_id}/responses", tags=["api/responses"])
async def api_submit_response(
    request: Request, form_id: str, user: CurrentUser | None = Depends(respondent)
) -> JSONResponse:
    storage = request.app.state.storage
    form = get_published_form(request, form_id)
    payload = await read_payload(request, RESPONSE_PAYLOAD_SCHEMA)
    answers = payload["answers"]
    shape_errors = answer_shape_errors(form.get("fields") or [], answers)
    if shape_errors:
        raise HTTPException(status_code=400, detail=shape_errors)

    try:
        response, errors = submit_response(
            storage,
            form,
            answers,
            payload.get("started_at"),
            user_agent=request.headers.get("user-agent", ""),
            user_id=user.id if user else None,
            tab_switches=payload.get("tab_switches") or 0,
        )
    except PolicyViolation:
        raise NotFoundError("Form not found or is not published")
    if errors:
        return JSONResponse({"errors": errors}, status_code=422)
    return JSONResponse(
        {"response_id": response["id"], "submitted_at": to_iso(response["submitted_at"])},
        status_code=201,
    )
