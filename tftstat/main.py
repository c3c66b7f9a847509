# main.py – Point d'entrée du crawler TFT
# -----------------------------------------------------------------------------
#  • Un seul client Riot et un seul client Mongo, partagés par toutes les régions.
#  • Un RegionCrawler par région, lancés ensemble (asyncio.gather).
#  • SIGINT / SIGTERM : arrêt propre entre deux cycles.
#  • HEALTH_PORT défini : sonde FastAPI servie dans la même boucle.
# -----------------------------------------------------------------------------

from __future__ import annotations

import asyncio
import signal

import uvicorn

from tftstat.config import Settings, get_settings
from tftstat.db.document_store import DocumentStore, create_client
from tftstat.logging_config import get_logger, setup_logging
from tftstat.riot.client import RiotClient
from tftstat.services.crawler import RegionCrawler

log = get_logger("tftstat.main")


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # Windows
            pass


async def _serve_health(port: int) -> None:
    from tftstat.health import app

    config = uvicorn.Config(app, host="0.0.0.0", port=port, log_level="warning")
    await uvicorn.Server(config).serve()


async def run(settings: Settings, stop_event: asyncio.Event) -> None:
    mongo = create_client(settings.MONGO_URL, settings.APP_NAME)
    store = DocumentStore(mongo[settings.MONGO_DB])
    await store.ensure_ttl_indexes([
        settings.SUMMONERS_COLLECTION,
        settings.STANDINGS_COLLECTION,
        settings.MATCHES_COLLECTION,
    ])

    async with RiotClient(
        settings.RIOT_API_KEY,
        quota_max=settings.RATE_LIMIT_MAX,
        quota_window=settings.RATE_LIMIT_WINDOW,
    ) as api:
        crawlers = [RegionCrawler(region, api, store, settings) for region in settings.REGIONS]
        log.info("Starting crawlers for %s", ", ".join(settings.REGIONS))

        health = None
        if settings.HEALTH_PORT:
            health = asyncio.create_task(_serve_health(settings.HEALTH_PORT))
        try:
            await asyncio.gather(*(c.run(stop_event) for c in crawlers))
        finally:
            if health is not None:
                health.cancel()
            await mongo.close()


async def main() -> None:
    settings = get_settings()
    setup_logging(level=settings.LOG_LEVEL)

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    await run(settings, stop_event)


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
