"""
Persistence for authenticated browser sessions (Playwright storage state).

Two modes are supported:
  * server-held: FileSessionStore keeps one JSON snapshot on disk;
  * client-held: the caller sends the snapshot with each request and
    validate_client_snapshot decides whether it is usable.
"""
import asyncio
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=7)
MISSING_REASON = "No saved session"
NO_COOKIES_REASON = "Invalid auth state (no cookies)"
MALFORMED_REASON = "Invalid auth state (malformed origins)"


def expired_reason(max_age: timedelta) -> str:
    return f"Session expired (older than {max_age.days} days)"


def is_session_state(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("cookies"), list)
        and isinstance(value.get("origins"), list)
    )


def validate_client_snapshot(
    state: Any,
    timestamp: Optional[datetime],
    max_age: timedelta = DEFAULT_MAX_AGE,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Return the snapshot when it is well-formed, has cookies and is fresh."""
    if not is_session_state(state) or not state["cookies"]:
        return None
    if timestamp is not None:
        now = now or datetime.now(timezone.utc)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if now - timestamp > max_age:
            logger.info("Client session snapshot is older than %s days", max_age.days)
            return None
    return state


@dataclass(frozen=True)
class SessionStatus:
    authenticated: bool
    path: str
    last_modified: Optional[str] = None
    cookie_count: Optional[int] = None
    age_in_days: Optional[float] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "authenticated": self.authenticated,
            "path": self.path,
            "lastModified": self.last_modified,
        }
        if self.cookie_count is not None:
            data["cookieCount"] = self.cookie_count
        if self.age_in_days is not None:
            data["ageInDays"] = self.age_in_days
        if self.reason:
            data["reason"] = self.reason
        return data


class SessionStore(ABC):
    @abstractmethod
    async def load(self) -> Optional[Dict[str, Any]]:
        """Return a usable snapshot, or None."""

    @abstractmethod
    async def save(self, state: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def clear(self) -> bool:
        ...

    @abstractmethod
    async def status(self) -> SessionStatus:
        ...


class FileSessionStore(SessionStore):
    """
    One snapshot file at a well-known path.

    Freshness comes from the file's mtime. Expired or cookie-less snapshots
    are deleted as soon as they are inspected. The lock only serializes
    callers inside this process.
    """

    def __init__(self, path: Path, max_age: timedelta = DEFAULT_MAX_AGE) -> None:
        self.path = Path(path)
        self.max_age = max_age
        self._lock = asyncio.Lock()

    def _delete(self) -> bool:
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False

    def _inspect(self) -> Tuple[SessionStatus, Optional[Dict[str, Any]]]:
        if not self.path.exists():
            return SessionStatus(False, str(self.path), reason=MISSING_REASON), None

        mtime = self.path.stat().st_mtime
        modified = datetime.fromtimestamp(mtime, tz=timezone.utc).isoformat()
        age_seconds = time.time() - mtime
        if age_seconds > self.max_age.total_seconds():
            self._delete()
            logger.info("Deleted expired session snapshot %s", self.path)
            return SessionStatus(False, str(self.path), last_modified=modified, reason=expired_reason(self.max_age)), None

        try:
            state = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable session snapshot %s: %s", self.path, exc)
            state = None
        cookies = state.get("cookies") if isinstance(state, dict) else None
        if not isinstance(cookies, list) or not cookies:
            self._delete()
            logger.info("Deleted session snapshot without cookies %s", self.path)
            return SessionStatus(False, str(self.path), last_modified=modified, reason=NO_COOKIES_REASON), None

        state.setdefault("origins", [])
        if not is_session_state(state):
            self._delete()
            logger.info("Deleted malformed session snapshot %s", self.path)
            return SessionStatus(False, str(self.path), last_modified=modified, reason=MALFORMED_REASON), None

        status = SessionStatus(
            True,
            str(self.path),
            last_modified=modified,
            cookie_count=len(cookies),
            age_in_days=round(age_seconds / 86400, 2),
        )
        return status, state

    async def load(self) -> Optional[Dict[str, Any]]:
        async with self._lock:
            _, state = self._inspect()
        return state

    async def status(self) -> SessionStatus:
        async with self._lock:
            status, _ = self._inspect()
        return status

    async def save(self, state: Dict[str, Any]) -> None:
        if not is_session_state(state):
            raise ValueError("Session state must contain cookies and origins lists.")
        async with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(state, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        logger.info("Saved session snapshot with %s cookie(s) to %s", len(state["cookies"]), self.path)

    async def clear(self) -> bool:
        async with self._lock:
            removed = self._delete()
        if removed:
            logger.info("Cleared session snapshot %s", self.path)
        return removed
