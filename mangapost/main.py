from __future__ import annotations
import asyncio
import logging
import sys
from aiohttp import web

from mangapost.config import Config, load_config
from mangapost.services.auth import AdminAccount
from mangapost.services.publisher import Publisher
from mangapost.services.telegram_client import LinkNotifier, Notifier, TelegramNotifier
from mangapost.storage.kv_store import JsonFileStore
from mangapost.storage.post_repo import LocalPostRepository, PostRepository, SqlPostRepository
from mangapost.web.app_factory import create_web_app


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_repo(cfg: Config, store) -> PostRepository:
    if cfg.posts_backend == "local":
        return LocalPostRepository(store)
    return SqlPostRepository(cfg.database_url)


def build_notifier(cfg: Config) -> Notifier:
    if cfg.notifier == "link":
        return LinkNotifier(cfg.channel_url, delay_seconds=cfg.demo_delay_seconds)
    return TelegramNotifier(
        cfg.telegram_token,
        cfg.channel_id,
        channel_url=cfg.channel_url,
        button_text=cfg.read_button_text,
    )


async def main():
    cfg = load_config()
    setup_logging(cfg.log_level)

    store = JsonFileStore(cfg.state_file)
    account = AdminAccount(store, admin_password=cfg.admin_password, ttl_seconds=cfg.session_ttl_seconds)
    if not await account.has_admin():
        logging.warning("No admin password configured, the first /auth/setup call will set it")

    repo = build_repo(cfg, store)
    await repo.start()

    notifier = build_notifier(cfg)
    await notifier.start()

    publisher = Publisher(account=account, repo=repo, notifier=notifier)
    app = create_web_app(cfg=cfg, account=account, repo=repo, publisher=publisher)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=cfg.web_host, port=cfg.web_port)
    await site.start()

    logging.info("Web: http://%s:%s (posts=%s, notifier=%s)", cfg.web_host, cfg.web_port, cfg.posts_backend, cfg.notifier)

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await notifier.close()
        await repo.close()
        await runner.cleanup()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
