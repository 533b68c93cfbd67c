from __future__ import annotations
import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional

from mangapost.errors import AuthError, ValidationError
from mangapost.storage.kv_store import ADMIN_HASH_KEY, SESSION_KEY, KeyValueStore

logger = logging.getLogger(__name__)

SESSION_TTL_SECONDS = 7 * 24 * 3600
MIN_PASSWORD_LENGTH = 6


def verify_secret(submitted: Optional[str], configured: Optional[str]) -> bool:
    if not isinstance(submitted, str) or not isinstance(configured, str):
        return False
    if not submitted or not configured:
        return False
    return hmac.compare_digest(submitted.encode(), configured.encode())


def hash_password(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


class AdminAccount:
    """The single admin credential plus its active-session marker.

    A password configured through the environment always wins; without one the
    first ``setup`` call stores a hash and that becomes the credential.
    """

    def __init__(self, store: KeyValueStore, *, admin_password: str = "", ttl_seconds: int = SESSION_TTL_SECONDS):
        self._store = store
        self._admin_password = admin_password
        self.ttl_seconds = ttl_seconds

    @property
    def configured(self) -> bool:
        return bool(self._admin_password)

    async def has_admin(self) -> bool:
        return self.configured or bool(await self._store.get(ADMIN_HASH_KEY))

    async def verify(self, password: Optional[str]) -> bool:
        if self.configured:
            return verify_secret(password, self._admin_password)
        stored = await self._store.get(ADMIN_HASH_KEY)
        if not isinstance(password, str) or not password or not stored:
            return False
        return verify_secret(hash_password(password), stored)

    async def setup(self, password: str, confirm: str, *, now: Optional[float] = None) -> Dict[str, Any]:
        if await self.has_admin():
            raise AuthError("Admin password already set.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if password != confirm:
            raise ValidationError("Passwords do not match.")

        await self._store.set(ADMIN_HASH_KEY, hash_password(password))
        logger.info("Admin password created")
        return await self._open_session(now)

    async def login(self, password: str, *, now: Optional[float] = None) -> Dict[str, Any]:
        if not await self.has_admin():
            raise AuthError("No admin password set yet. Create one first.")
        if not password:
            raise AuthError("Please enter your password.")
        if not await self.verify(password):
            logger.warning("Rejected admin login")
            raise AuthError("Incorrect password. Try again.")
        return await self._open_session(now)

    async def logout(self) -> None:
        await self._store.delete(SESSION_KEY)

    async def reset(self) -> None:
        await self._store.delete(ADMIN_HASH_KEY)
        await self._store.delete(SESSION_KEY)
        logger.info("Admin password cleared")

    async def active_session(self, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        session = await self._store.get(SESSION_KEY)
        if not isinstance(session, dict):
            return None
        now = time.time() if now is None else now
        try:
            expires_at = float(session["expires_at"])
        except (KeyError, TypeError, ValueError):
            await self._store.delete(SESSION_KEY)
            return None
        if now > expires_at:
            await self._store.delete(SESSION_KEY)
            return None
        return session

    async def _open_session(self, now: Optional[float]) -> Dict[str, Any]:
        now = time.time() if now is None else now
        session = {"expires_at": int(now) + self.ttl_seconds}
        await self._store.set(SESSION_KEY, session)
        return session
