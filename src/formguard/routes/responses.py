from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from formguard.auth import CurrentUser, require_user
from formguard.errors import AccessDenied, StorageError
from formguard.fields import answer_to_text
from formguard.policy import can_read_responses, require_owner

logger = logging.getLogger(__name__)

router = APIRouter()


def build_response_rows(
    fields: list[dict[str, Any]], responses: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for response in responses:
        answers = response.get("answers") or {}
        metadata = response.get("metadata") or {}
        time_taken = metadata.get("time_taken")
        rows.append(
            {
                "id": response["id"],
                "submitted_at": response["submitted_at"],
                "user_name": answers.get("user_name") or "N/A",
                "user_email": answers.get("user_email") or "N/A",
                "time_taken": f"{time_taken}s" if time_taken else "N/A",
                "cells": [answer_to_text(answers.get(field["id"])) or "-" for field in fields],
            }
        )
    return rows


@router.get("/responses/{form_id}", response_class=HTMLResponse, tags=["dashboard"])
async def list_responses(
    request: Request, form_id: str, user: CurrentUser = Depends(require_user)
) -> HTMLResponse:
    storage = request.app.state.storage
    templates = request.app.state.templates
    form = require_owner(storage.forms.get_form(form_id), user.id)
    if not can_read_responses(form, user.id):
        raise AccessDenied("Only the form owner may read responses")

    notices: list[dict[str, str]] = []
    responses: list[dict[str, Any]] = []
    try:
        responses = storage.responses.list_responses(form_id)
    except StorageError:
        logger.exception("Failed to load responses for form %s", form_id)
        notices.append({"level": "error", "text": "Failed to load form responses"})

    fields = form.get("fields") or []
    return templates.TemplateResponse(
        request,
        "form_responses.html",
        {
            "user": user,
            "form": form,
            "fields": fields,
            "rows": build_response_rows(fields, responses),
            "response_count": len(responses),
            "notices": notices,
        },
    )
