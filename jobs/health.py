"""
Health check server for ingestion monitoring.

Provides HTTP endpoint for health checks and monitoring.
"""

import asyncio

from aiohttp import web
from loguru import logger

from tgi.services.ingestion import IngestionPipeline

# Global pipeline reference for health checks
_pipeline: IngestionPipeline | None = None


def set_pipeline(pipeline: IngestionPipeline | None) -> None:
    """
    Set the pipeline instance for health checks.

    Args:
        pipeline: IngestionPipeline instance to monitor
    """
    global _pipeline
    _pipeline = pipeline
    if pipeline is not None:
        logger.info("[Health] Ingestion pipeline registered")


async def health_handler(request: web.Request) -> web.Response:
    """
    Health check endpoint.

    Returns:
        JSON response with ingestion status
    """
    if _pipeline is None:
        return web.json_response(
            {
                "status": "unhealthy",
                "error": "Pipeline not initialized",
            },
            status=503,
        )

    status = _pipeline.status()
    connected = _pipeline.rpc.is_connected
    healthy = connected and not status["stopping"]

    return web.json_response(
        {
            "status": "healthy" if healthy else "degraded",
            "rpc_connected": connected,
            **status,
        },
        status=200 if healthy else 503,
    )


async def readiness_handler(request: web.Request) -> web.Response:
    """
    Readiness check endpoint.

    Ready once the initial backfill finished and a selected tip exists.

    Returns:
        JSON response indicating if ingestion is caught up
    """
    ready = (
        _pipeline is not None
        and not _pipeline.syncing
        and _pipeline.tracker.committed_tip_hash is not None
    )
    if not ready:
        return web.json_response(
            {
                "status": "not_ready",
                "ready": False,
            },
            status=503,
        )

    return web.json_response(
        {
            "status": "ready",
            "ready": True,
        }
    )


async def liveness_handler(request: web.Request) -> web.Response:
    """
    Liveness check endpoint.

    Returns:
        JSON response indicating if the process is alive
    """
    return web.json_response(
        {
            "status": "alive",
            "alive": True,
        }
    )


ROUTES = {
    "/health": health_handler,
    "/readiness": readiness_handler,
    "/liveness": liveness_handler,
}


def create_health_app() -> web.Application:
    app = web.Application()
    for path, handler in ROUTES.items():
        app.router.add_get(path, handler)
    return app


async def start_health_server(port: int, host: str = "0.0.0.0") -> web.AppRunner:
    """
    Serve the health endpoints next to ingestion.

    Args:
        port: Port to bind to
        host: Host to bind to

    Returns:
        AppRunner, to be passed to stop_health_server
    """
    runner = web.AppRunner(create_health_app(), access_log=None)
    await runner.setup()
    await web.TCPSite(runner, host, port).start()

    logger.info(f"[Health] Serving {', '.join(ROUTES)} on http://{host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: float = 5) -> None:
    """Stop the health server, giving up after ``timeout`` seconds."""
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
    except TimeoutError:
        logger.warning(f"[Health] Server cleanup timed out after {timeout}s")
    else:
        logger.info("[Health] Server stopped")
