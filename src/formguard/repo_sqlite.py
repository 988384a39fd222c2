from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from formguard.config import merge_settings
from formguard.errors import FormGuardError, NotFoundError, StorageError
from formguard.models import Base, FormModel, ResponseModel, UserModel
from formguard.policy import require_owner, require_published
from formguard.utils import derive_user_name, dumps_json, ensure_aware, loads_json, now_utc

logger = logging.getLogger(__name__)


class SQLiteRepoBase:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._Session = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._Session() as session:
                yield session
        except FormGuardError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("SQLite store failure")
            raise StorageError(str(exc)) from exc


class SQLiteUserRepo(SQLiteRepoBase):
    def get_user(self, user_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            row = session.get(UserModel, user_id)
            return self._to_dict(row) if row else None

    def handle_new_user(
        self, user_id: str, email: str, metadata: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        with self._session() as session:
            row = session.get(UserModel, user_id)
            if row is None:
                row = UserModel(
                    id=user_id,
                    email=email,
                    name=derive_user_name(email, metadata),
                    created_at=now_utc(),
                )
                session.add(row)
                session.commit()
                logger.info("User created: %s <%s>", user_id, email)
            return self._to_dict(row)

    @staticmethod
    def _to_dict(row: UserModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "email": row.email,
            "name": row.name,
            "created_at": ensure_aware(row.created_at),
        }


class SQLiteFormRepo(SQLiteRepoBase):
    def list_forms(self, owner_id: str) -> list[dict[str, Any]]:
        with self._session() as session:
            rows = (
                session.query(FormModel)
                .filter(FormModel.owner_id == owner_id)
                .order_by(FormModel.updated_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def get_form(self, form_id: str) -> dict[str, Any] | None:
        with self._session() as session:
            row = session.get(FormModel, form_id)
            return self._to_dict(row) if row else None

    def create_form(self, form: dict[str, Any]) -> dict[str, Any]:
        with self._session() as session:
            row = FormModel(
                id=form["id"],
                title=form["title"],
                description=form.get("description") or "",
                owner_id=form["owner_id"],
                fields_json=dumps_json(form.get("fields") or []),
                settings_json=dumps_json(merge_settings(form.get("settings"))),
                is_published=bool(form.get("is_published")),
                created_at=form["created_at"],
                updated_at=form["updated_at"],
            )
            session.add(row)
            session.commit()
            return self._to_dict(row)

    def update_form(
        self, form_id: str, updates: dict[str, Any], owner_id: str
    ) -> dict[str, Any]:
        with self._session() as session:
            row = session.get(FormModel, form_id)
            require_owner(self._to_dict(row) if row else None, owner_id)
            for key, value in updates.items():
                if key == "fields":
                    row.fields_json = dumps_json(value)
                elif key == "settings":
                    row.settings_json = dumps_json(merge_settings(value))
                elif key in {"title", "description", "is_published"}:
                    setattr(row, key, value)
            row.updated_at = now_utc()
            session.commit()
            session.refresh(row)
            return self._to_dict(row)

    def delete_form(self, form_id: str, owner_id: str) -> None:
        with self._session() as session:
            row = session.get(FormModel, form_id)
            require_owner(self._to_dict(row) if row else None, owner_id)
            session.query(ResponseModel).filter(ResponseModel.form_id == form_id).delete()
            session.delete(row)
            session.commit()

    @staticmethod
    def _to_dict(row: FormModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "title": row.title,
            "description": row.description or "",
            "owner_id": row.owner_id,
            "fields": loads_json(row.fields_json) or [],
            "settings": merge_settings(loads_json(row.settings_json)),
            "is_published": bool(row.is_published),
            "created_at": ensure_aware(row.created_at),
            "updated_at": ensure_aware(row.updated_at),
        }


class SQLiteResponseRepo(SQLiteRepoBase):
    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        with self._session() as session:
            rows = (
                session.query(ResponseModel)
                .filter(ResponseModel.form_id == form_id)
                .order_by(ResponseModel.submitted_at.desc())
                .all()
            )
            return [self._to_dict(row) for row in rows]

    def count_responses(self, form_id: str) -> int:
        with self._session() as session:
            return (
                session.query(func.count(ResponseModel.id))
                .filter(ResponseModel.form_id == form_id)
                .scalar()
                or 0
            )

    def has_response_from(self, form_id: str, user_id: str) -> bool:
        with self._session() as session:
            row = (
                session.query(ResponseModel.id)
                .filter(ResponseModel.form_id == form_id, ResponseModel.user_id == user_id)
                .first()
            )
            return row is not None

    def create_response(self, response: dict[str, Any]) -> dict[str, Any]:
        with self._session() as session:
            form = session.get(FormModel, response["form_id"])
            if form is None:
                raise NotFoundError("Form not found")
            require_published(SQLiteFormRepo._to_dict(form))
            row = ResponseModel(
                id=response["id"],
                form_id=response["form_id"],
                user_id=response.get("user_id"),
                answers_json=dumps_json(response.get("answers") or {}),
                metadata_json=dumps_json(response.get("metadata") or {}),
                submitted_at=response["submitted_at"],
            )
            session.add(row)
            session.commit()
            return self._to_dict(row)

    @staticmethod
    def _to_dict(row: ResponseModel) -> dict[str, Any]:
        return {
            "id": row.id,
            "form_id": row.form_id,
            "user_id": row.user_id,
            "answers": loads_json(row.answers_json) or {},
            "metadata": loads_json(row.metadata_json) or {},
            "submitted_at": ensure_aware(row.submitted_at),
        }


class SQLiteStorage:
    def __init__(self, db_path: Path) -> None:
        self._engine = create_engine(f"sqlite:///{db_path}", future=True)
        event.listen(self._engine, "connect", _enable_foreign_keys)
        self._Session = sessionmaker(self._engine, expire_on_commit=False)
        Base.metadata.create_all(self._engine)
        self.users = SQLiteUserRepo(self._Session)
        self.forms = SQLiteFormRepo(self._Session)
        self.responses = SQLiteResponseRepo(self._Session)

    def dispose(self) -> None:
        self._engine.dispose()


def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
