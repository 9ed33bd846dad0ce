#!/usr/bin/env python3
"""
Create the processing tier schema without starting ingestion.

Reads TGI_CONNECTION_STRING (and the other TGI_ settings) from the
environment. Deployments managed by Alembic use ``alembic upgrade head``
instead.
"""

import asyncio
import sys

from loguru import logger
from pydantic import ValidationError

from tgi.config.database import create_engine, init_schema
from tgi.config.settings import Settings
from tgi.models import Base


async def init_database(settings: Settings) -> None:
    engine = create_engine(settings)
    try:
        await init_schema(engine)
    finally:
        await engine.dispose()
    logger.success(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")


def main() -> int:
    logger.remove()
    logger.add(sys.stderr, level="INFO")
    try:
        settings = Settings()
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    asyncio.run(init_database(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
