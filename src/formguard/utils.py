from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

import orjson
import ulid


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    return ensure_aware(dt).isoformat()


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_dt(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str) and value:
        try:
            return ensure_aware(datetime.fromisoformat(value))
        except ValueError:
            return None
    return None


def dumps_json(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def loads_json(value: str | None) -> Any:
    if not value:
        return None
    return orjson.loads(value)


def new_uuid() -> str:
    return str(uuid.uuid4())


def new_field_id() -> str:
    value = ulid.new()
    return f"field_{getattr(value, 'str', str(value)).lower()}"


def derive_user_name(email: str, metadata: dict[str, Any] | None = None) -> str:
    metadata = metadata or {}
    for key in ("name", "full_name"):
        value = str(metadata.get(key) or "").strip()
        if value:
            return value
    return email.split("@", 1)[0]
