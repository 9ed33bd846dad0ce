"""
Processing tier main entry point.

Wires settings, logging, database, node RPC client and the ingestion
pipeline together and runs ingestion until a signal or a fatal error.
"""

import asyncio
import signal
import sys
from collections.abc import Sequence

from loguru import logger
from pydantic import ValidationError

from jobs.health import set_pipeline, start_health_server, stop_health_server
from tgi.cli import VERSION_BANNER, load_settings, parse_args
from tgi.config.database import create_engine, create_session_maker, init_schema
from tgi.config.logging import setup_logging
from tgi.config.settings import Settings
from tgi.services.ingestion import IngestionPipeline
from tgi.services.rpc_client import NodeRpcClient
from tgi.utils.exceptions import FATAL_ERRORS
from tgi.version import VERSION

BANNER = (
    "=================================================\n"
    "Tondi Graph Inspector (TGI)   -   Processing Tier\n"
    "================================================="
)


def _install_signal_handlers(pipeline: IngestionPipeline, main_task: asyncio.Task) -> None:
    """First SIGINT/SIGTERM stops gracefully, a second one cancels."""
    loop = asyncio.get_running_loop()
    received = 0

    def on_signal(signame: str) -> None:
        nonlocal received
        received += 1
        if received == 1:
            logger.info(f"Received {signame}, shutting down...")
            pipeline.stop()
        else:
            logger.warning(f"Received {signame} again, forcing shutdown")
            main_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig.name)
        except NotImplementedError:
            # Windows event loops
            pass


async def run_processing(settings: Settings) -> int:
    """
    Run ingestion with explicit settings.

    Returns:
        Process exit status
    """
    logger.info(f"Application version {VERSION}")
    logger.info(f"Network {settings.network}")

    engine = create_engine(settings)
    rpc = NodeRpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    health_runner = None

    try:
        await init_schema(engine)
        session_maker = create_session_maker(engine)

        await rpc.connect()
        pipeline = IngestionPipeline(settings, session_maker, rpc)
        _install_signal_handlers(pipeline, asyncio.current_task())

        if settings.health_check_port:
            set_pipeline(pipeline)
            health_runner = await start_health_server(settings.health_check_port)

        await pipeline.sync()
        return 0

    except FATAL_ERRORS as e:
        logger.critical(f"Fatal: {type(e).__name__}: {e}")
        return 1
    except asyncio.CancelledError:
        logger.warning("Processing cancelled")
        return 1
    finally:
        if health_runner is not None:
            await stop_health_server(health_runner)
        await rpc.close()
        await engine.dispose()
        logger.info("Processing tier stopped")


async def main(argv: Sequence[str] | None = None) -> int:
    """Parse flags, configure logging and run the processing tier."""
    args = parse_args(argv)
    if args.show_version:
        print(VERSION_BANNER)
        return 0

    try:
        settings = load_settings(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return 2

    setup_logging(settings.log_level, settings.log_dir)
    print(BANNER)
    return await run_processing(settings)


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Processing stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Processing crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
