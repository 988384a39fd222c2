"""Who is calling, and when their session starts or ends.

The current user is never kept in a module global: each request resolves an
:class:`Identity` through the configured :class:`AuthProvider` and routes get
a :class:`CurrentUser` through FastAPI dependencies.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from fastapi import HTTPException, Request

from formguard.config import Settings

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

MAX_ACTIVE_SESSIONS = 1024


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    name: str


SessionCallback = Callable[[str, Identity], None]


class SessionEvents:
    def __init__(self, max_active: int = MAX_ACTIVE_SESSIONS) -> None:
        self._subscribers: list[SessionCallback] = []
        self._active: OrderedDict[str, Identity] = OrderedDict()
        self._max_active = max_active
        self._lock = threading.Lock()

    def subscribe(self, callback: SessionCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def is_active(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._active

    def observe(self, identity: Identity) -> None:
        with self._lock:
            if identity.id in self._active:
                self._active.move_to_end(identity.id)
                return
            self._active[identity.id] = identity
            # Evicted sessions sign in again on their next request.
            while len(self._active) > self._max_active:
                self._active.popitem(last=False)
        self._publish(SIGNED_IN, identity)

    def end(self, user_id: str) -> None:
        with self._lock:
            identity = self._active.pop(user_id, None)
        if identity is not None:
            self._publish(SIGNED_OUT, identity)

    def _publish(self, event: str, identity: Identity) -> None:
        logger.info("Session event: %s %s", event, identity.email)
        for callback in list(self._subscribers):
            callback(event, identity)


class AuthProvider(Protocol):
    def identify(self, request: Request) -> Identity | None: ...


class LocalAuthProvider:
    """Single-user mode: every request acts as the configured local owner."""

    def __init__(self, email: str, name: str = "") -> None:
        self._identity = Identity(
            id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"formguard:local:{email}")),
            email=email,
            metadata={"name": name} if name else {},
        )

    def identify(self, request: Request) -> Identity | None:
        return self._identity


class HeaderAuthProvider:
    """Trusts identity headers set by an authenticating reverse proxy."""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix

    def identify(self, request: Request) -> Identity | None:
        user_id = request.headers.get(f"{self._prefix}-Id", "").strip()
        email = request.headers.get(f"{self._prefix}-Email", "").strip()
        if not user_id or not email:
            return None
        name = request.headers.get(f"{self._prefix}-Name", "").strip()
        return Identity(id=user_id, email=email, metadata={"name": name} if name else {})


def get_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_mode == "header":
        return HeaderAuthProvider(settings.auth_header_prefix)
    if settings.auth_mode != "local":
        raise ValueError(f"Unknown auth mode: {settings.auth_mode!r}")
    return LocalAuthProvider(settings.local_user_email, settings.local_user_name)


def current_user(request: Request) -> CurrentUser | None:
    identity = request.app.state.auth_provider.identify(request)
    if identity is None:
        return None
    request.app.state.sessions.observe(identity)
    users = request.app.state.storage.users
    row = users.get_user(identity.id) or users.handle_new_user(
        identity.id, identity.email, identity.metadata
    )
    return CurrentUser(id=row["id"], email=row["email"], name=row["name"])


def respondent(request: Request) -> CurrentUser | None:
    """Who is answering a public form.

    In local mode the built-in identity belongs to the owner, so public
    respondents stay anonymous there.
    """
    if request.app.state.settings.auth_mode == "local":
        return None
    return current_user(request)


def require_user(request: Request) -> CurrentUser:
    user = current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return user
