"""Entry point for the candle replay backend.

Wires settings, logging, the SQLite store, the exchange client and the
backfill engine into the FastAPI app, and serves it with uvicorn. The
database and exchange client share uvicorn's event loop via the FastAPI
lifespan context manager.

Component wiring order (in lifespan):
1. ChartDatabase (opens SQLite, creates schema)
2. ChartDataStore (typed reads/writes)
3. BinanceClient (ccxt async, markets loaded eagerly when reachable)
4. BackfillSync (incremental candle fetch)
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from replay.api.app import create_app
from replay.config import AppSettings
from replay.data.database import ChartDatabase
from replay.data.store import ChartDataStore
from replay.data.sync import BackfillSync
from replay.exceptions import UpstreamError
from replay.exchange.binance_client import BinanceClient
from replay.logging import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open storage and the exchange client on startup, release them on shutdown."""
    logger = get_logger("replay.main")
    settings: AppSettings = app.state.settings

    database = ChartDatabase(settings.database.path)
    await database.connect()
    store = ChartDataStore(database)

    exchange_client = BinanceClient(settings.market)
    try:
        await exchange_client.connect()
    except UpstreamError as e:
        # Markets are loaded again on the first sync
        logger.warning("exchange_unreachable_at_startup", error=str(e))

    app.state.database = database
    app.state.store = store
    app.state.exchange_client = exchange_client
    app.state.sync = BackfillSync(exchange_client, store, settings.market)

    logger.info("lifespan_started", db_path=settings.database.path)

    yield

    await exchange_client.close()
    await database.close()
    logger.info("candle_replay_stopped")


async def run() -> None:
    """Run the backend HTTP server until interrupted."""
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("replay.main")

    app = create_app(lifespan=lifespan)
    app.state.settings = settings

    logger.info("starting_api", host=settings.api.host, port=settings.api.port)

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
