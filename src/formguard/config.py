from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

BASE_DIR = Path(__file__).resolve().parent

FIELD_TYPES = (
    "short_text",
    "paragraph",
    "multiple_choice",
    "checkbox",
    "dropdown",
    "date",
    "file_upload",
)
TEXT_TYPES = frozenset({"short_text", "paragraph"})
CHOICE_TYPES = frozenset({"multiple_choice", "checkbox", "dropdown"})
DEFAULT_OPTIONS = ("Option 1", "Option 2")

RESERVED_ANSWER_KEYS = ("user_name", "user_email")

DEFAULT_FORM_SETTINGS = {
    "allow_multiple_submissions": False,
    "require_auth": False,
    "collect_identity": False,
    "theme": {
        "primary_color": "#3b82f6",
        "background_color": "#ffffff",
    },
}


def merge_settings(settings: dict[str, Any] | None) -> dict[str, Any]:
    merged = copy.deepcopy(DEFAULT_FORM_SETTINGS)
    for key, value in (settings or {}).items():
        if key == "theme" and isinstance(value, dict):
            merged["theme"].update(value)
        else:
            merged[key] = value
    return merged


class Settings:
    def __init__(self) -> None:
        self.storage_backend = os.getenv("STORAGE_BACKEND", "sqlite").lower()
        self.sqlite_path = Path(os.getenv("SQLITE_PATH", "./data/app.db"))
        self.json_path = Path(os.getenv("JSON_PATH", "./data/jsonstore.json"))
        self.auth_mode = os.getenv("AUTH_MODE", "local").lower()
        self.local_user_email = os.getenv("LOCAL_USER_EMAIL", "owner@localhost")
        self.local_user_name = os.getenv("LOCAL_USER_NAME", "")
        self.auth_header_prefix = os.getenv("AUTH_HEADER_PREFIX", "X-Auth-User")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.host = os.getenv("HOST", "0.0.0.0")
        port_value = os.getenv("PORT", "8000")
        try:
            self.port = int(port_value)
        except ValueError:
            self.port = 8000


def ensure_dirs(settings: Settings) -> None:
    settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    settings.json_path.parent.mkdir(parents=True, exist_ok=True)
