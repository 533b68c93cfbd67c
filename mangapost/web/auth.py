from __future__ import annotations
import base64
import binascii
import hmac
import hashlib
import time
from dataclasses import dataclass
from aiohttp import web
from typing import Optional

COOKIE_NAME = "session"
ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Session:
    user: str
    role: str
    exp: int


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def make_session_cookie(*, secret: str, user: str, role: str = ADMIN_ROLE, exp: Optional[int] = None,
                        ttl_seconds: int = 0, now: Optional[float] = None) -> str:
    if exp is None:
        exp = int(time.time() if now is None else now) + ttl_seconds
    payload = f"{user}|{role}|{exp}"
    sig = _sign(secret, payload)
    raw = f"{payload}|{sig}"
    # no "=" padding so the value never needs cookie quoting
    return base64.urlsafe_b64encode(raw.encode()).decode().rstrip("=")


def parse_session_cookie(*, secret: str, cookie: str, now: Optional[float] = None) -> Optional[Session]:
    try:
        raw = base64.urlsafe_b64decode((cookie + "=" * (-len(cookie) % 4)).encode()).decode()
        user, role, exp, sig = raw.split("|", 3)
        exp_i = int(exp)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    payload = f"{user}|{role}|{exp}"
    if not hmac.compare_digest(sig.encode(), _sign(secret, payload).encode()):
        return None
    now = time.time() if now is None else now
    if exp_i < int(now):
        return None
    if role != ADMIN_ROLE:
        return None
    return Session(user=user, role=role, exp=exp_i)


def session_middleware(secret: str):
    """Attach the admin session when the cookie is valid and the server-side marker is still active."""
    @web.middleware
    async def mw(request: web.Request, handler):
        request["session"] = None
        cookie = request.cookies.get(COOKIE_NAME)
        if cookie:
            sess = parse_session_cookie(secret=secret, cookie=cookie)
            # logout/reset drop the marker, which revokes every cookie issued before
            if sess and await request.app["account"].active_session():
                request["session"] = sess
        return await handler(request)
    return mw


def require_login_middleware(protected_prefixes: tuple[str, ...]):
    @web.middleware
    async def mw(request: web.Request, handler):
        if any(request.path.startswith(p) for p in protected_prefixes):
            if not request.get("session"):
                if request.path.startswith("/api/"):
                    return web.json_response({"ok": False, "error": "unauthorized"}, status=401)
                raise web.HTTPFound("/")
        return await handler(request)
    return mw
