"""Admin gate: credential check plus in-memory sessions.

Sessions are process-local (single node). Expiry slides forward on every
successful check. Expired entries are also swept periodically so the map
does not grow without bound.
"""
import asyncio
import hmac
import logging
import secrets
from contextlib import suppress
from dataclasses import dataclass

from filedrop.clock import Clock, now_ms

logger = logging.getLogger(__name__)

MS_PER_HOUR = 60 * 60 * 1000


@dataclass
class Session:
    created_at: int
    expires_at: int


class SessionService:
    def __init__(
        self,
        ttl_ms: int = 7 * 24 * MS_PER_HOUR,
        clock: Clock = now_ms,
        sweep_interval_seconds: float = 3600,
    ):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self.sweep_interval_seconds = sweep_interval_seconds
        self._sessions: dict[str, Session] = {}
        self._task: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> tuple[str, int]:
        token = secrets.token_hex(32)
        now = self._clock()
        session = Session(created_at=now, expires_at=now + self.ttl_ms)
        self._sessions[token] = session
        return token, session.expires_at

    def check(self, token: str | None) -> bool:
        if not token:
            return False
        session = self._sessions.get(token)
        if session is None:
            return False
        now = self._clock()
        if now > session.expires_at:
            self._sessions.pop(token, None)
            return False
        session.expires_at = now + self.ttl_ms
        return True

    def invalidate(self, token: str | None) -> None:
        if token:
            self._sessions.pop(token, None)

    def sweep(self) -> int:
        now = self._clock()
        stale = [t for t, s in self._sessions.items() if now > s.expires_at]
        for token in stale:
            del self._sessions[token]
        return len(stale)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="session-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            removed = self.sweep()
            if removed:
                logger.debug(f"Swept {removed} expired admin session(s)")


class AdminAuth:
    def __init__(self, password: str, sessions: SessionService):
        self._password = password
        self.sessions = sessions

    def verify_credential(self, password: str) -> bool:
        return hmac.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))

    def login(self, password: str) -> tuple[str, int] | None:
        """New session for a correct password, otherwise None."""
        if not self.verify_credential(password):
            logger.warning("Admin login failed: wrong password")
            return None
        token, expires_at = self.sessions.create()
        logger.info("Admin login succeeded, session created")
        return token, expires_at

    def check_session(self, token: str | None) -> bool:
        return self.sessions.check(token)

    def invalidate_session(self, token: str | None) -> None:
        self.sessions.invalidate(token)
