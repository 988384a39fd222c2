from __future__ import annotations

import copy
import logging
from typing import Any

from formguard.config import merge_settings
from formguard.fields import check_field_type, is_choice_type, normalize_field
from formguard.protocols import Storage
from formguard.utils import new_field_id, new_uuid, now_utc

logger = logging.getLogger(__name__)

DIRECTIONS = ("up", "down")


def add_field(fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    field = normalize_field(
        {
            "id": new_field_id(),
            "type": "short_text",
            "label": "",
            "required": False,
            "placeholder": "",
        }
    )
    return [*fields, field]


def update_field(
    fields: list[dict[str, Any]], field_id: str, updates: dict[str, Any]
) -> list[dict[str, Any]]:
    """Merge ``updates`` into the field with ``field_id``.

    A type change away from a choice type clears the options; a change into a
    choice type seeds the default options unless the field (or the update)
    already carries some.
    """
    if "type" in updates:
        check_field_type(updates["type"])
    result: list[dict[str, Any]] = []
    for field in fields:
        if field["id"] != field_id:
            result.append(field)
            continue
        merged = {**field, **{k: v for k, v in updates.items() if k != "id"}}
        if not is_choice_type(merged["type"]):
            merged.pop("options", None)
        result.append(normalize_field(merged))
    return result


def remove_field(fields: list[dict[str, Any]], field_id: str) -> list[dict[str, Any]]:
    return [field for field in fields if field["id"] != field_id]


def move_field(
    fields: list[dict[str, Any]], field_id: str, direction: str
) -> list[dict[str, Any]]:
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown direction: {direction!r}")
    result = list(fields)
    index = next((i for i, field in enumerate(result) if field["id"] == field_id), None)
    if index is None:
        return result
    new_index = index - 1 if direction == "up" else index + 1
    if new_index < 0 or new_index >= len(result):
        return result
    result[index], result[new_index] = result[new_index], result[index]
    return result


def _field_options(fields: list[dict[str, Any]], field_id: str) -> list[str] | None:
    for field in fields:
        if field["id"] == field_id:
            return list(field.get("options") or [])
    return None


def add_option(fields: list[dict[str, Any]], field_id: str) -> list[dict[str, Any]]:
    options = _field_options(fields, field_id)
    if options is None:
        return list(fields)
    return update_field(fields, field_id, {"options": [*options, ""]})


def update_option(
    fields: list[dict[str, Any]], field_id: str, index: int, value: str
) -> list[dict[str, Any]]:
    options = _field_options(fields, field_id)
    if options is None or not 0 <= index < len(options):
        return list(fields)
    options[index] = value
    return update_field(fields, field_id, {"options": options})


def remove_option(
    fields: list[dict[str, Any]], field_id: str, index: int
) -> list[dict[str, Any]]:
    options = _field_options(fields, field_id)
    if options is None or not 0 <= index < len(options):
        return list(fields)
    del options[index]
    return update_field(fields, field_id, {"options": options})


class FormBuilder:
    """Editable state of one form on the builder screen.

    Every field operation swaps ``fields`` for a new list; nothing touches the
    store until :meth:`save` is called.
    """

    def __init__(
        self,
        form_id: str | None = None,
        title: str = "",
        description: str = "",
        fields: list[dict[str, Any]] | None = None,
        settings: dict[str, Any] | None = None,
        is_published: bool = False,
    ) -> None:
        self.form_id = form_id
        self.title = title
        self.description = description
        self.fields = [normalize_field(field) for field in fields or []]
        self.settings = merge_settings(settings)
        self.is_published = is_published

    @classmethod
    def from_form(cls, form: dict[str, Any]) -> FormBuilder:
        return cls(
            form_id=form["id"],
            title=form.get("title", ""),
            description=form.get("description") or "",
            fields=form.get("fields") or [],
            settings=form.get("settings"),
            is_published=bool(form.get("is_published")),
        )

    def add_field(self) -> dict[str, Any]:
        self.fields = add_field(self.fields)
        return self.fields[-1]

    def update_field(self, field_id: str, updates: dict[str, Any]) -> None:
        self.fields = update_field(self.fields, field_id, updates)

    def remove_field(self, field_id: str) -> None:
        self.fields = remove_field(self.fields, field_id)

    def move_field(self, field_id: str, direction: str) -> None:
        self.fields = move_field(self.fields, field_id, direction)

    def add_option(self, field_id: str) -> None:
        self.fields = add_option(self.fields, field_id)

    def update_option(self, field_id: str, index: int, value: str) -> None:
        self.fields = update_option(self.fields, field_id, index, value)

    def remove_option(self, field_id: str, index: int) -> None:
        self.fields = remove_option(self.fields, field_id, index)

    def can_move(self, field_id: str, direction: str) -> bool:
        ids = [field["id"] for field in self.fields]
        if field_id not in ids:
            return False
        index = ids.index(field_id)
        return index > 0 if direction == "up" else index < len(ids) - 1

    def check(self) -> list[str]:
        errors: list[str] = []
        if not self.title.strip():
            errors.append("Please enter a form title")
        return errors

    def to_payload(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "fields": copy.deepcopy(self.fields),
            "settings": copy.deepcopy(self.settings),
            "is_published": self.is_published,
        }

    def save(self, storage: Storage, owner_id: str, publish: bool = False) -> dict[str, Any]:
        """Persist the current state and return the stored form.

        Raises :class:`~formguard.errors.StorageError` when the store fails and
        :class:`~formguard.errors.AccessDenied` when ``owner_id`` does not own
        an existing form. Nothing is retried.
        """
        payload = self.to_payload()
        payload["is_published"] = publish or self.is_published
        if self.form_id:
            form = storage.forms.update_form(self.form_id, payload, owner_id=owner_id)
            logger.info("Form updated: %s (%d fields)", form["id"], len(form["fields"]))
        else:
            now = now_utc()
            form = storage.forms.create_form(
                {
                    **payload,
                    "id": new_uuid(),
                    "owner_id": owner_id,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            logger.info("Form created: %s (%d fields)", form["id"], len(form["fields"]))
        self.form_id = form["id"]
        self.is_published = bool(form["is_published"])
        return form

