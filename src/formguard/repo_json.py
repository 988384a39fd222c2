from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from tinydb import Query, TinyDB

from formguard.config import merge_settings
from formguard.errors import FormGuardError, NotFoundError, StorageError
from formguard.policy import require_owner, require_published
from formguard.utils import derive_user_name, now_utc, parse_dt, to_iso

logger = logging.getLogger(__name__)


class JSONRepoBase:
    def __init__(self, path: Path, lock: FileLock) -> None:
        self._path = path
        self._lock = lock

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        try:
            with self._lock:
                db = TinyDB(self._path)
                try:
                    yield db
                finally:
                    db.close()
        except FormGuardError:
            raise
        except (OSError, ValueError, Timeout) as exc:
            logger.exception("JSON store failure: %s", self._path)
            raise StorageError(str(exc)) from exc


class JSONUserRepo(JSONRepoBase):
    def get_user(self, user_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("users").get(Query().id == user_id)
        return self._from_record(item) if item else None

    def handle_new_user(
        self, user_id: str, email: str, metadata: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        with self._db() as db:
            table = db.table("users")
            item = table.get(Query().id == user_id)
            if item is None:
                item = {
                    "id": user_id,
                    "email": email,
                    "name": derive_user_name(email, metadata),
                    "created_at": to_iso(now_utc()),
                }
                table.insert(item)
                logger.info("User created: %s <%s>", user_id, email)
        return self._from_record(item)

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "email": record.get("email", ""),
            "name": record.get("name", ""),
            "created_at": parse_dt(record.get("created_at")) or now_utc(),
        }


class JSONFormRepo(JSONRepoBase):
    def list_forms(self, owner_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("forms").search(Query().owner_id == owner_id)
        forms = [self._from_record(item) for item in items]
        return sorted(forms, key=lambda x: x["updated_at"], reverse=True)

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._db() as db:
            item = db.table("forms").get(Query().id == form_id)
        return self._from_record(item) if item else None

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        record = self._to_record(form)
        with self._db() as db:
            db.table("forms").insert(record)
        return self._from_record(record)

    def update_form(
        self, form_id: str, updates: dict[str, Any], owner_id: str
    ) -> dict[str, Any]:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            require_owner(self._from_record(item) if item else None, owner_id)
            allowed = {
                key: value
                for key, value in updates.items()
                if key in {"title", "description", "fields", "settings", "is_published"}
            }
            item.update(self._to_record(allowed, partial=True))
            item["updated_at"] = to_iso(now_utc())
            table.update(item, Query().id == form_id)
        return self._from_record(item)

    def delete_form(self, form_id: str, owner_id: str) -> None:
        with self._db() as db:
            table = db.table("forms")
            item = table.get(Query().id == form_id)
            require_owner(self._from_record(item) if item else None, owner_id)
            db.table("form_responses").remove(Query().form_id == form_id)
            table.remove(Query().id == form_id)

    @staticmethod
    def _to_record(form: dict[str, Any], partial: bool = False) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for key, value in form.items():
            if key in {"created_at", "updated_at"}:
                record[key] = to_iso(value) if isinstance(value, datetime) else value
            elif key == "settings":
                record[key] = merge_settings(value)
            elif key == "is_published":
                record[key] = bool(value)
            else:
                record[key] = value
        if not partial:
            record.setdefault("description", "")
            record.setdefault("fields", [])
            record.setdefault("settings", merge_settings(None))
            record.setdefault("is_published", False)
            record.setdefault("created_at", to_iso(now_utc()))
            record.setdefault("updated_at", to_iso(now_utc()))
        return record

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "title": record.get("title", ""),
            "description": record.get("description") or "",
            "owner_id": record.get("owner_id"),
            "fields": list(record.get("fields") or []),
            "settings": merge_settings(record.get("settings")),
            "is_published": bool(record.get("is_published")),
            "created_at": parse_dt(record.get("created_at")) or now_utc(),
            "updated_at": parse_dt(record.get("updated_at")) or now_utc(),
        }


class JSONResponseRepo(JSONRepoBase):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._db() as db:
            items = db.table("form_responses").search(Query().form_id == form_id)
        responses = [self._from_record(item) for item in items]
        return sorted(responses, key=lambda x: x["submitted_at"], reverse=True)

    def count_responses(self, form_id: str) -> int:
        with self._db() as db:
            return db.table("form_responses").count(Query().form_id == form_id)

    def has_response_from(self, form_id: str, user_id: str) -> bool:
        with self._db() as db:
            return db.table("form_responses").contains(
                (Query().form_id == form_id) & (Query().user_id == user_id)
            )

    def create_response(self, response: dict[str, Any]) -> dict[str, Any]:
        record = self._to_record(response)
        with self._db() as db:
            form = db.table("forms").get(Query().id == response["form_id"])
            if form is None:
                raise NotFoundError("Form not found")
            require_published(JSONFormRepo._from_record(form))
            db.table("form_responses").insert(record)
        return self._from_record(record)

    @staticmethod
    def _to_record(response: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": response["id"],
            "form_id": response["form_id"],
            "user_id": response.get("user_id"),
            "answers": response.get("answers") or {},
            "metadata": response.get("metadata") or {},
            "submitted_at": to_iso(response["submitted_at"]),
        }

    @staticmethod
    def _from_record(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "form_id": record["form_id"],
            "user_id": record.get("user_id"),
            "answers": record.get("answers") or {},
            "metadata": record.get("metadata") or {},
            "submitted_at": parse_dt(record.get("submitted_at")) or now_utc(),
        }


class JSONStorage:
    def __init__(self, path: Path) -> None:
        self._lock = FileLock(f"{path}.lock", timeout=10)
        self.users = JSONUserRepo(path, self._lock)
        self.forms = JSONFormRepo(path, self._lock)
        self.responses = JSONResponseRepo(path, self._lock)

    def dispose(self) -> None:
        return None
