from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from eventsite import settings
from eventsite.routers import admin, booking, events, messages, profiles

TORTOISE_MODULES = {"models": ["eventsite.models"]}


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with RegisterTortoise(
        app,
        db_url=settings.db_url,
        modules=TORTOISE_MODULES,
        generate_schemas=settings.db_url.startswith("sqlite"),
    ):
        logger.info("Database ready: {}", settings.db_url.split("://", 1)[0])
        yield


def create_app() -> FastAPI:
    app = FastAPI(title="Community events", lifespan=lifespan)
    app.include_router(events.router)
    app.include_router(booking.router)
    app.include_router(messages.router)
    app.include_router(profiles.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
