from __future__ import annotations
import logging
from typing import Any, Dict
from aiohttp import web

from mangapost.errors import AuthError, PublishError, ValidationError
from mangapost.web.auth import COOKIE_NAME

logger = logging.getLogger(__name__)

MAX_POSTS_EXPOSE = 200
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def setup_routes(app: web.Application) -> None:
    # pages
    app.router.add_get("/", index)

    # publish
    app.router.add_post("/admin/save", admin_save)

    # auth
    app.router.add_post("/auth/setup", do_setup)
    app.router.add_post("/auth/login", do_login)
    app.router.add_post("/auth/logout", do_logout)
    app.router.add_post("/auth/reset", do_reset)

    # api
    app.router.add_get("/api/session", api_session)
    app.router.add_get("/api/posts", api_posts)
    app.router.add_delete("/api/posts", api_clear_posts)
    app.router.add_post("/api/posts/{post_id}/resend", api_resend)


def error_response(exc: Exception, *, key: str = "error") -> web.Response:
    """Only two error statuses leave the server: 401 for auth, 500 for the rest."""
    if isinstance(exc, AuthError):
        return web.json_response({key: str(exc) or "Unauthorized"}, status=401)
    if isinstance(exc, PublishError):
        return web.json_response({key: str(exc)}, status=500)
    logger.exception("Unhandled error: %s", exc)
    return web.json_response({key: "Internal error"}, status=500)


async def _read_payload(request: web.Request) -> Dict[str, Any]:
    if not request.can_read_body:
        return {}
    if request.content_type in FORM_CONTENT_TYPES:
        data = await request.post()
        return dict(data)
    # fetch() without a header sends JSON as text/plain
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError(f"Invalid JSON body: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _with_session_cookie(request: web.Request, payload: Dict[str, Any], session: Dict[str, Any]) -> web.Response:
    resp = web.json_response(payload)
    cookie = request.app["make_session"](int(session["expires_at"]))
    resp.set_cookie(COOKIE_NAME, cookie, httponly=True, samesite="Lax",
                    max_age=request.app["account"].ttl_seconds)
    return resp


async def index(request: web.Request) -> web.Response:
    return web.FileResponse(request.app["tpl_dir"] / "index.html")


async def admin_save(request: web.Request) -> web.Response:
    publisher = request.app["publisher"]
    try:
        payload = await _read_payload(request)
        run = await publisher.publish(payload)
    except Exception as exc:
        return error_response(exc)
    return web.json_response({"success": True, "id": run.post.id, "link": run.link})


async def do_setup(request: web.Request) -> web.Response:
    account = request.app["account"]
    try:
        data = await _read_payload(request)
        session = await account.setup(str(data.get("password") or ""), str(data.get("confirm") or ""))
    except Exception as exc:
        return error_response(exc)
    return _with_session_cookie(request, {"ok": True, "message": "Password created. You are now logged in."}, session)


async def do_login(request: web.Request) -> web.Response:
    account = request.app["account"]
    try:
        data = await _read_payload(request)
        session = await account.login(str(data.get("password") or ""))
    except Exception as exc:
        return error_response(exc)
    return _with_session_cookie(request, {"ok": True, "message": "Welcome back. Session active for 7 days."}, session)


async def do_logout(request: web.Request) -> web.Response:
    # without a valid session only the caller's cookie is dropped
    if request.get("session"):
        await request.app["account"].logout()
    resp = web.json_response({"ok": True, "message": "You have been logged out."})
    resp.del_cookie(COOKIE_NAME)
    return resp


async def do_reset(request: web.Request) -> web.Response:
    if not request.get("session"):
        return error_response(AuthError("Login required."))
    account = request.app["account"]
    await account.reset()
    resp = web.json_response({"ok": True, "message": "Admin password cleared. Set a new one."})
    resp.del_cookie(COOKIE_NAME)
    return resp


async def api_session(request: web.Request) -> web.Response:
    account = request.app["account"]
    sess = request.get("session")
    return web.json_response({
        "ok": True,
        "has_admin": await account.has_admin(),
        "logged_in": bool(sess),
        "expires_at": sess.exp if sess else None,
    })


async def api_posts(request: web.Request) -> web.Response:
    repo = request.app["repo"]
    try:
        limit = min(MAX_POSTS_EXPOSE, max(1, int(request.query.get("limit", "50"))))
    except ValueError:
        limit = 50
    try:
        posts = await repo.list_all()
    except PublishError as exc:
        return error_response(exc)
    return web.json_response({"ok": True, "posts": [p.to_listing() for p in posts[:limit]]})


async def api_clear_posts(request: web.Request) -> web.Response:
    try:
        removed = await request.app["repo"].clear()
    except PublishError as exc:
        return error_response(exc)
    logger.info("Cleared %s posts", removed)
    return web.json_response({"ok": True, "removed": removed})


async def api_resend(request: web.Request) -> web.Response:
    publisher = request.app["publisher"]
    try:
        post_id = int(request.match_info["post_id"])
    except ValueError:
        return error_response(ValidationError("Post id must be an integer."))
    try:
        run = await publisher.resend(post_id)
    except Exception as exc:
        return error_response(exc)
    return web.json_response({"ok": True, "id": run.post.id, "link": run.link})
