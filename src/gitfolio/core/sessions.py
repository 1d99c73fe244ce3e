"""Session and repository-config persistence.

Two backends implement each store:

* Cookie stores keep the JSON-encoded value in an httpOnly, sameSite=lax
  cookie. The cookie is NOT signed: anyone able to set cookies for the
  origin can forge a session or point the site at another repository.
  This is acceptable only for a single-operator admin tool.
* File stores keep values in a YAML file on the server. The session cookie
  then carries only an opaque random id.

Stored values that fail to parse are treated as absent, never as errors.
"""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml
from fastapi import Request, Response
from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from gitfolio.core.errors import MalformedConfig
from gitfolio.core.models import RepoConfig, Session

logger = logging.getLogger(__name__)

SESSION_COOKIE = "gitfolio_session"
CONFIG_COOKIE = "gitfolio_config"


def _parse(model: type[BaseModel], data: Any) -> Any:
    """Validate stored data as ``model``; raise MalformedConfig on failure."""
    try:
        if isinstance(data, (str, bytes)):
            return model.model_validate_json(data)
        return model.model_validate(data)
    except (ModelValidationError, ValueError) as e:
        raise MalformedConfig(f"Stored {model.__name__} is malformed: {e}") from e


def _live(session: Session | None) -> Session | None:
    if session is None or session.is_expired():
        return None
    return session


class SessionStore(ABC):
    """Holds the authenticated session for a request.

    ``load`` returns None for a missing, malformed or expired session; expiry
    is checked lazily on every load.
    """

    @abstractmethod
    def load(self, request: Request) -> Session | None: ...

    @abstractmethod
    def save(self, response: Response, session: Session) -> None: ...

    @abstractmethod
    def clear(self, request: Request, response: Response) -> None: ...


class ConfigStore(ABC):
    """Holds the target repository configuration."""

    @abstractmethod
    def load(self, request: Request) -> RepoConfig | None: ...

    @abstractmethod
    def save(self, response: Response, config: RepoConfig) -> None: ...


class _CookieMixin:
    def __init__(self, secure: bool = False, max_age: int = 7 * 24 * 60 * 60):
        self.secure = secure
        self.max_age = max_age

    def _set(self, response: Response, name: str, value: str) -> None:
        response.set_cookie(
            name,
            value,
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.secure,
            samesite="lax",
        )

    def _delete(self, response: Response, name: str) -> None:
        response.delete_cookie(
            name, path="/", httponly=True, secure=self.secure, samesite="lax"
        )


# ============================================================
# Cookie backend
# ============================================================


class CookieSessionStore(_CookieMixin, SessionStore):
    def load(self, request: Request) -> Session | None:
        raw = request.cookies.get(SESSION_COOKIE)
        if not raw:
            return None
        try:
            return _live(_parse(Session, raw))
        except MalformedConfig as e:
            logger.warning("Ignoring session cookie: %s", e.message)
            return None

    def save(self, response: Response, session: Session) -> None:
        self._set(response, SESSION_COOKIE, session.model_dump_json(by_alias=True))

    def clear(self, request: Request, response: Response) -> None:
        self._delete(response, SESSION_COOKIE)


class CookieConfigStore(_CookieMixin, ConfigStore):
    def load(self, request: Request) -> RepoConfig | None:
        raw = request.cookies.get(CONFIG_COOKIE)
        if not raw:
            return None
        try:
            return _parse(RepoConfig, raw)
        except MalformedConfig as e:
            logger.warning("Ignoring config cookie: %s", e.message)
            return None

    def save(self, response: Response, config: RepoConfig) -> None:
        self._set(response, CONFIG_COOKIE, config.model_dump_json(by_alias=True))


# ============================================================
# File backend
# ============================================================


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.warning("Ignoring unreadable state file %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")


class FileSessionStore(_CookieMixin, SessionStore):
    """Sessions in a YAML file keyed by the opaque id held in the cookie."""

    def __init__(
        self, path: Path, secure: bool = False, max_age: int = 7 * 24 * 60 * 60
    ):
        super().__init__(secure=secure, max_age=max_age)
        self.path = path

    def load(self, request: Request) -> Session | None:
        session_id = request.cookies.get(SESSION_COOKIE)
        if not session_id:
            return None
        entry = _read_yaml(self.path).get(session_id)
        if entry is None:
            return None
        try:
            return _live(_parse(Session, entry))
        except MalformedConfig as e:
            logger.warning("Ignoring stored session: %s", e.message)
            return None

    def save(self, response: Response, session: Session) -> None:
        now_ms = int(time.time() * 1000)
        # Drop expired sessions while rewriting the file
        sessions = {
            key: value
            for key, value in _read_yaml(self.path).items()
            if isinstance(value, dict) and value.get("expiresAt", 0) >= now_ms
        }
        session_id = secrets.token_urlsafe(32)
        sessions[session_id] = session.to_json_dict()
        _write_yaml(self.path, sessions)
        self._set(response, SESSION_COOKIE, session_id)

    def clear(self, request: Request, response: Response) -> None:
        session_id = request.cookies.get(SESSION_COOKIE)
        if session_id:
            sessions = _read_yaml(self.path)
            if sessions.pop(session_id, None) is not None:
                _write_yaml(self.path, sessions)
        self._delete(response, SESSION_COOKIE)


class FileConfigStore(ConfigStore):
    """One deployment-wide config in a YAML file."""

    def __init__(self, path: Path):
        self.path = path

    def load(self, request: Request) -> RepoConfig | None:
        data = _read_yaml(self.path)
        if not data:
            return None
        try:
            return _parse(RepoConfig, data)
        except MalformedConfig as e:
            logger.warning("Ignoring stored config: %s", e.message)
            return None

    def save(self, response: Response, config: RepoConfig) -> None:
        _write_yaml(self.path, config.to_json_dict())
