import logging

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from forge.config import get_settings
from forge.controllers.execute import router as execute_router
from forge.controllers.health import router as health_router
from forge.controllers.ws_session import router as ws_session_router
from forge.errors import register_exception_handlers
from forge.lifespan import cleanup_resources, setup_resources
from forge.middleware import HTTPLogMiddleware


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    resources = await setup_resources()
    try:
        yield
    finally:
        await cleanup_resources(resources)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title="CodeForge Execution API", version="1.0.0", lifespan=lifespan)
    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_origin_regex=settings.cors.origins_regex or None,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.debug.request:
        logging.getLogger("forge.http").setLevel(logging.DEBUG)
        app.add_middleware(HTTPLogMiddleware)

    if settings.debug.websocket:
        logging.getLogger("forge.ws.session").setLevel(logging.INFO)
    else:
        logging.getLogger("forge.ws.session").setLevel(logging.WARNING)

    app.include_router(health_router)
    app.include_router(execute_router)
    app.include_router(ws_session_router)
    return app


app = create_app()
