from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from formguard.config import RESERVED_ANSWER_KEYS

REQUIRED_MESSAGE = "This field is required"


def is_blank(answer: Any) -> bool:
    if answer is None:
        return True
    if isinstance(answer, (list, tuple)):
        return len(answer) == 0
    return str(answer).strip() == ""


def validate_answers(
    fields: list[dict[str, Any]],
    answers: Mapping[str, Any],
    require_identity: bool = False,
) -> dict[str, str]:
    """Return ``{field_id: message}`` for every required field left blank.

    With ``require_identity`` the reserved ``user_name`` and ``user_email``
    keys are treated as two more required fields.
    """
    errors: dict[str, str] = {}
    for field in fields:
        if field.get("required") and is_blank(answers.get(field["id"])):
            errors[field["id"]] = REQUIRED_MESSAGE
    if require_identity:
        for key in RESERVED_ANSWER_KEYS:
            if is_blank(answers.get(key)):
                errors[key] = REQUIRED_MESSAGE
    return errors
