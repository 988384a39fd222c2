from __future__ import annotations

from typing import Any, Protocol


class UserRepository(Protocol):
    def get_user(self, user_id: str) -> dict[str, Any] | None: ...

    def handle_new_user(
        self, user_id: str, email: str, metadata: dict[str, Any] | None = None
    ) -> dict[str, Any]: ...


class FormRepository(Protocol):
    def list_forms(self, owner_id: str) -> list[dict[str, Any]]: ...

    def get_form(self, form_id: str) -> dict[str, Any] | None: ...

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]: ...

    def update_form(
        self, form_id: str, updates: dict[str, Any], owner_id: str
    ) -> dict[str, Any]: ...

    def delete_form(self, form_id: str, owner_id: str) -> None: ...


class ResponseRepository(Protocol):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]: ...

    def count_responses(self, form_id: str) -> int: ...

    def has_response_from(self, form_id: str, user_id: str) -> bool: ...

    def create_response(self, response: dict[str, Any]) -> dict[str, Any]: ...


class Storage(Protocol):
    users: UserRepository
    forms: FormRepository
    responses: ResponseRepository

    def dispose(self) -> None: ...
