from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from formguard.config import FIELD_TYPES, RESERVED_ANSWER_KEYS
from formguard.validation import is_blank

FIELD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": {"enum": list(FIELD_TYPES)},
        "label": {"type": "string"},
        "required": {"type": "boolean"},
        "options": {"type": "array", "items": {"type": "string"}},
        "placeholder": {"type": "string"},
    },
}

FORM_PAYLOAD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "description": {"type": ["string", "null"]},
        "fields": {"type": "array", "items": FIELD_SCHEMA},
        "settings": {"type": "object"},
        "is_published": {"type": "boolean"},
    },
}

RESPONSE_PAYLOAD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["answers"],
    "properties": {
        "answers": {"type": "object"},
        "started_at": {"type": ["string", "null"]},
        "tab_switches": {"type": ["integer", "null"], "minimum": 0},
    },
}


def build_answer_property(field: dict[str, Any]) -> dict[str, Any]:
    field_type = field["type"]
    if field_type == "checkbox":
        prop: dict[str, Any] = {
            "type": "array",
            "items": {"type": "string", "enum": list(field.get("options") or [])},
            "uniqueItems": True,
        }
    elif field_type in {"multiple_choice", "dropdown"}:
        prop = {"type": "string", "enum": list(field.get("options") or []) + [""]}
    elif field_type == "date":
        prop = {"type": "string", "format": "date"}
    else:
        prop = {"type": "string"}
    prop["title"] = field.get("label") or field["id"]
    return prop


def answers_schema(fields: list[dict[str, Any]]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for field in fields:
        properties[field["id"]] = build_answer_property(field)
    for key in RESERVED_ANSWER_KEYS:
        properties.setdefault(key, {"type": "string"})
    return {
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }


def payload_errors(schema: dict[str, Any], payload: Any) -> list[str]:
    validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
    errors = sorted(validator.iter_errors(payload), key=lambda err: list(err.path))
    messages: list[str] = []
    for error in errors:
        location = ".".join(str(part) for part in error.path)
        messages.append(f"{location}: {error.message}" if location else error.message)
    return messages


def answer_shape_errors(fields: list[dict[str, Any]], answers: Any) -> list[str]:
    """Report answers whose shape does not match their field.

    Missing or blank answers are not reported here; required-field checks
    belong to :func:`formguard.validation.validate_answers`.
    """
    present = answers
    if isinstance(answers, dict):
        present = {key: value for key, value in answers.items() if not is_blank(value)}
    return payload_errors(answers_schema(fields), present)
