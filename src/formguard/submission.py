from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from formguard.config import RESERVED_ANSWER_KEYS
from formguard.errors import AccessDenied
from formguard.policy import require_published
from formguard.protocols import Storage
from formguard.utils import new_uuid, now_utc, parse_dt
from formguard.validation import is_blank, validate_answers

logger = logging.getLogger(__name__)


def toggle_option(selected: list[str], option: str, checked: bool) -> list[str]:
    if checked:
        return selected if option in selected else [*selected, option]
    return [item for item in selected if item != option]


def _coerce_single(field: dict[str, Any], raw: Any) -> str | None:
    field_type = field["type"]
    if field_type == "file_upload":
        # Only the name of the chosen file is recorded; the content is dropped.
        name = getattr(raw, "filename", raw)
        return str(name).strip() if name else None
    if raw is None:
        return None
    value = str(raw)
    if field_type in {"multiple_choice", "dropdown"}:
        return value if value in (field.get("options") or []) else None
    if field_type == "date":
        try:
            return date.fromisoformat(value.strip()).isoformat()
        except ValueError:
            return None
    return value


def collect_answers(
    fields: list[dict[str, Any]], form_data: Any, include_identity: bool = False
) -> dict[str, Any]:
    """Read posted form data into stored answer shapes.

    ``form_data`` is anything with ``get``/``getlist`` (Starlette's
    ``FormData``). Blank answers are left out of the result.
    """
    answers: dict[str, Any] = {}
    for field in fields:
        field_id = field["id"]
        if field["type"] == "checkbox":
            options = field.get("options") or []
            selected: list[str] = []
            for value in form_data.getlist(field_id):
                if value in options:
                    selected = toggle_option(selected, value, True)
            if selected:
                answers[field_id] = selected
            continue
        value = _coerce_single(field, form_data.get(field_id))
        if value is not None and value.strip() != "":
            answers[field_id] = value
    if include_identity:
        for key in RESERVED_ANSWER_KEYS:
            value = str(form_data.get(key) or "").strip()
            if value:
                answers[key] = value
    return answers


def clean_answers(answers: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in answers.items():
        if is_blank(value):
            continue
        cleaned[key] = value
    return cleaned


def compute_time_taken(started_at: Any, submitted_at: datetime) -> int:
    started = parse_dt(started_at)
    if started is None:
        return 0
    return max(0, round((submitted_at - started).total_seconds()))


def parse_tab_switches(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


def build_response(
    form: dict[str, Any],
    answers: dict[str, Any],
    started_at: Any,
    user_agent: str = "",
    user_id: str | None = None,
    tab_switches: Any = 0,
    submitted_at: datetime | None = None,
) -> dict[str, Any]:
    submitted_at = submitted_at or now_utc()
    return {
        "id": new_uuid(),
        "form_id": form["id"],
        "user_id": user_id,
        "answers": clean_answers(answers),
        "metadata": {
            "time_taken": compute_time_taken(started_at, submitted_at),
            "user_agent": user_agent or "",
            "tab_switches": parse_tab_switches(tab_switches),
        },
        "submitted_at": submitted_at,
    }


def needs_identity(form: dict[str, Any], user_id: str | None) -> bool:
    return not user_id and bool(form.get("settings", {}).get("collect_identity"))


def check_submission_allowed(
    storage: Storage, form: dict[str, Any], user_id: str | None
) -> None:
    require_published(form)
    settings = form.get("settings") or {}
    if settings.get("require_auth") and not user_id:
        raise AccessDenied("Please sign in to respond to this form")
    if (
        user_id
        and not settings.get("allow_multiple_submissions")
        and storage.responses.has_response_from(form["id"], user_id)
    ):
        raise AccessDenied("You have already responded to this form")


def submit_response(
    storage: Storage,
    form: dict[str, Any],
    answers: dict[str, Any],
    started_at: Any,
    user_agent: str = "",
    user_id: str | None = None,
    tab_switches: Any = 0,
) -> tuple[dict[str, Any] | None, dict[str, str]]:
    """Validate ``answers`` and append a response when they pass.

    Returns ``(response, {})`` on success and ``(None, errors)`` when a
    required field is blank. Store failures propagate as
    :class:`~formguard.errors.StorageError`.
    """
    check_submission_allowed(storage, form, user_id)
    errors = validate_answers(
        form.get("fields") or [], answers, require_identity=needs_identity(form, user_id)
    )
    if errors:
        return None, errors
    response = build_response(
        form,
        answers,
        started_at,
        user_agent=user_agent,
        user_id=user_id,
        tab_switches=tab_switches,
    )
    stored = storage.responses.create_response(response)
    logger.info("Response stored: %s for form %s", stored["id"], form["id"])
    return stored, {}
