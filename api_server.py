from __future__ import annotations  # FastAPI server exposing interview lifecycle and evaluation

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import catalog_router, router
from config.settings import settings
from engines import bind_defaults
from observability.logger import HUMAN_DATEFMT, HUMAN_FORMAT, LOG_LEVEL
from storage.migrate import migrate


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:  # Prepare storage and engines
    migrate(settings.DB_PATH)
    config_path = Path(settings.APP_CONFIG_PATH)
    if config_path.is_file():
        bind_defaults(config_path)
        logger.info("Engines bound from %s", config_path)
    else:
        logger.warning("App config %s not found; evaluation requires engines bound in the registry", config_path)
    yield


def create_app() -> FastAPI:  # Build the application
    logging.basicConfig(level=LOG_LEVEL, format=HUMAN_FORMAT, datefmt=HUMAN_DATEFMT)
    app = FastAPI(title="Interview Evaluation API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    app.include_router(catalog_router)
    return app


app = create_app()
