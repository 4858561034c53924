from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncEngine

from creatorfeed.db import build_engine, build_session_factory
from creatorfeed.errors import ContentError
from creatorfeed.routes_content import router as content_router
from creatorfeed.routes_creators import router as creators_router
from creatorfeed.services.deduplication import DeduplicationEngine
from creatorfeed.services.normalizer import ContentNormalizer
from creatorfeed.settings import Settings, get_settings

logger = logging.getLogger("creatorfeed")


def create_app(settings: Settings | None = None, engine: AsyncEngine | None = None) -> FastAPI:
    """Build the API; the engine and the pipeline singletons live on ``app.state``."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.engine = engine or build_engine(settings.async_database_url)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.normalizer = ContentNormalizer()
    app.state.dedup_engine = DeduplicationEngine(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ContentError)
    async def content_error_handler(request: Request, exc: ContentError):
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url)
        return PlainTextResponse("Internal Server Error", status_code=500)

    @app.get("/ping")
    async def ping():
        return {"status": "ok"}

    app.include_router(content_router)
    app.include_router(creators_router)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Release pooled connections on app shutdown."""
        await app.state.engine.dispose()
        logger.info("Database engine disposed on app shutdown")

    return app
