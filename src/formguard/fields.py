from __future__ import annotations

from typing import Any

from formguard.config import CHOICE_TYPES, DEFAULT_OPTIONS, FIELD_TYPES, TEXT_TYPES

FIELD_TYPE_LABELS = {
    "short_text": "Short Text",
    "paragraph": "Paragraph",
    "multiple_choice": "Multiple Choice",
    "checkbox": "Checkboxes",
    "dropdown": "Dropdown",
    "date": "Date",
    "file_upload": "File Upload",
}

# type -> (widget, answer is a list)
FIELD_WIDGETS: dict[str, tuple[str, bool]] = {
    "short_text": ("text", False),
    "paragraph": ("textarea", False),
    "multiple_choice": ("radio", False),
    "checkbox": ("checkboxes", True),
    "dropdown": ("select", False),
    "date": ("date", False),
    "file_upload": ("file", False),
}


def is_choice_type(field_type: str) -> bool:
    return field_type in CHOICE_TYPES


def is_text_type(field_type: str) -> bool:
    return field_type in TEXT_TYPES


def check_field_type(field_type: Any) -> str:
    value = str(field_type or "").strip()
    if value not in FIELD_TYPES:
        raise ValueError(f"Unknown field type: {value!r}")
    return value


def normalize_field(field: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``field`` that carries only its type's attributes.

    Choice fields always get an ``options`` list (seeded with the default
    options when missing), text fields always get a ``placeholder`` and every
    other attribute combination is dropped.
    """
    field_type = check_field_type(field.get("type"))
    normalized: dict[str, Any] = {
        "id": str(field["id"]),
        "type": field_type,
        "label": str(field.get("label") or ""),
        "required": bool(field.get("required")),
    }
    if field_type in CHOICE_TYPES:
        options = field.get("options")
        if options is None:
            normalized["options"] = list(DEFAULT_OPTIONS)
        else:
            normalized["options"] = [str(option) for option in options]
    if field_type in TEXT_TYPES:
        normalized["placeholder"] = str(field.get("placeholder") or "")
    return normalized


def normalize_fields(fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [normalize_field(field) for field in fields]


def field_widget(field: dict[str, Any]) -> str:
    return FIELD_WIDGETS[field["type"]][0]


def answer_is_list(field: dict[str, Any]) -> bool:
    return FIELD_WIDGETS[field["type"]][1]


def field_type_label(field: dict[str, Any]) -> str:
    return FIELD_TYPE_LABELS.get(field.get("type", ""), field.get("type", ""))


def answer_to_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if value is None:
        return ""
    return str(value)
