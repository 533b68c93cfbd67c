from __future__ import annotations
from aiohttp import web
from pathlib import Path
from mangapost.web.auth import session_middleware, require_login_middleware, make_session_cookie
from mangapost.web.routes import setup_routes


def create_web_app(*, cfg, account, repo, publisher) -> web.Application:
    tpl_dir = Path(__file__).parent / "templates"

    app = web.Application(middlewares=[
        session_middleware(secret=cfg.session_secret),
        require_login_middleware(protected_prefixes=("/api/posts",)),
    ])

    app["config"] = cfg
    app["account"] = account
    app["repo"] = repo
    app["publisher"] = publisher
    app["tpl_dir"] = tpl_dir
    app["make_session"] = lambda exp: make_session_cookie(
        secret=cfg.session_secret,
        user="admin",
        exp=exp,
    )

    setup_routes(app)
    return app
