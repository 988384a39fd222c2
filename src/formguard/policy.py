"""Access rules for forms and responses.

The same predicates guard the HTTP routes and the repositories, so a client
that skips the screens still cannot read drafts, edit someone else's form or
post into an unpublished one.
"""
from __future__ import annotations

from typing import Any

from formguard.errors import AccessDenied, NotFoundError, PolicyViolation


def owns_form(form: dict[str, Any], user_id: str | None) -> bool:
    return bool(user_id) and form.get("owner_id") == user_id


def can_read_form(form: dict[str, Any], user_id: str | None) -> bool:
    return bool(form.get("is_published")) or owns_form(form, user_id)


def can_modify_form(form: dict[str, Any], user_id: str | None) -> bool:
    return owns_form(form, user_id)


def can_insert_response(form: dict[str, Any]) -> bool:
    return bool(form.get("is_published"))


def can_read_responses(form: dict[str, Any], user_id: str | None) -> bool:
    return owns_form(form, user_id)


def require_readable(form: dict[str, Any] | None, user_id: str | None) -> dict[str, Any]:
    # Unpublished forms of other owners look exactly like missing ones.
    if form is None or not can_read_form(form, user_id):
        raise NotFoundError("Form not found")
    return form


def require_owner(form: dict[str, Any] | None, user_id: str | None) -> dict[str, Any]:
    if form is None:
        raise NotFoundError("Form not found")
    if not can_modify_form(form, user_id):
        raise AccessDenied("Only the form owner may do this")
    return form


def require_published(form: dict[str, Any] | None) -> dict[str, Any]:
    if form is None:
        raise NotFoundError("Form not found")
    if not can_insert_response(form):
        raise PolicyViolation("Responses are only accepted for published forms")
    return form
