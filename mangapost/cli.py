from __future__ import annotations
import argparse
import asyncio
import getpass
import json
from typing import Optional
import aiohttp

from mangapost.config import load_config
from mangapost.main import build_repo
from mangapost.models import parse_tags
from mangapost.services.auth import hash_password
from mangapost.storage.kv_store import JsonFileStore


def _print(obj) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))


def _base_url(base_url: Optional[str]) -> str:
    cfg = load_config()
    return base_url or f"http://{cfg.web_host}:{cfg.web_port}"


async def _with_repo(fn):
    cfg = load_config()
    repo = build_repo(cfg, JsonFileStore(cfg.state_file))
    await repo.start()
    try:
        return await fn(repo)
    finally:
        await repo.close()


async def cmd_posts(limit: int) -> None:
    async def _list(repo):
        return await repo.list_all()
    posts = await _with_repo(_list)
    _print([p.to_listing() for p in posts[:limit]])


async def cmd_clear_posts() -> None:
    async def _clear(repo):
        return await repo.clear()
    removed = await _with_repo(_clear)
    _print({"ok": True, "removed": removed})


def cmd_hash_password() -> None:
    _print({"hash": hash_password(getpass.getpass("Password: "))})


async def _login(session: aiohttp.ClientSession, base_url: str, password: str) -> None:
    async with session.post(f"{base_url}/auth/login", json={"password": password}) as resp:
        if resp.status != 200:
            raise RuntimeError(f"Login failed, status={resp.status}")


async def cmd_publish(args: argparse.Namespace) -> None:
    password = args.admin_pass or getpass.getpass("Admin password: ")
    body = {
        "name": args.title,
        "description": args.description,
        "tags": parse_tags(args.tags),
        "coverUrl": args.cover,
        "destUrl": args.dest,
        "isAdult": args.adult,
        "adminPass": password,
    }
    async with aiohttp.ClientSession() as session:
        async with session.post(f"{_base_url(args.base_url)}/admin/save", json=body) as resp:
            payload = await resp.json(content_type=None)
            if resp.status != 200:
                raise RuntimeError(f"POST /admin/save failed: {resp.status} {payload.get('error')}")
            _print(payload)


async def cmd_resend(post_id: int, base_url: Optional[str], admin_pass: Optional[str]) -> None:
    base_url = _base_url(base_url)
    password = admin_pass or getpass.getpass("Admin password: ")
    # unsafe jar keeps cookies set by plain IP hosts such as 127.0.0.1
    async with aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True)) as session:
        await _login(session, base_url, password)
        async with session.post(f"{base_url}/api/posts/{post_id}/resend") as resp:
            payload = await resp.json(content_type=None)
            if resp.status != 200:
                raise RuntimeError(f"Resend failed: {resp.status} {payload.get('error')}")
            _print(payload)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mangapost-cli", description="CLI for the manga post dashboard")
    sub = p.add_subparsers(dest="cmd", required=True)

    ps = sub.add_parser("posts", help="List stored posts, newest first")
    ps.add_argument("--limit", type=int, default=50)

    sub.add_parser("clear-posts", help="Delete every stored post")
    sub.add_parser("hash-password", help="Print the SHA-256 hash of a password")

    pb = sub.add_parser("publish", help="Publish a post through the running server")
    pb.add_argument("--title", required=True)
    pb.add_argument("--description", required=True)
    pb.add_argument("--tags", default="", help="Comma-separated tags")
    pb.add_argument("--cover", required=True, help="Cover image URL")
    pb.add_argument("--dest", required=True, help="Link for the read button")
    pb.add_argument("--adult", action="store_true")
    pb.add_argument("--admin-pass", default=None)
    pb.add_argument("--base-url", type=str, default=None)

    rs = sub.add_parser("resend", help="Re-send a saved post to the channel")
    rs.add_argument("post_id", type=int)
    rs.add_argument("--admin-pass", default=None)
    rs.add_argument("--base-url", type=str, default=None)

    return p


async def _amain(args: argparse.Namespace) -> None:
    if args.cmd == "posts":
        await cmd_posts(args.limit)
    elif args.cmd == "clear-posts":
        await cmd_clear_posts()
    elif args.cmd == "hash-password":
        cmd_hash_password()
    elif args.cmd == "publish":
        await cmd_publish(args)
    elif args.cmd == "resend":
        await cmd_resend(args.post_id, args.base_url, args.admin_pass)
    else:
        raise RuntimeError("Unknown command")


def run() -> None:
    parser = build_parser()
    args = parser.parse_args()
    asyncio.run(_amain(args))


if __name__ == "__main__":
    run()
