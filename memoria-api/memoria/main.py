# memoria/main.py: only app wiring, no endpoints here.
#
# How to run:
#   memoria serve                                   (see memoria.cli)
#   uvicorn --factory memoria.main:create_app --port 3300
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# import routers
from memoria.api.routes import memories, stories, travel
from memoria.core.config import Settings, get_settings
from memoria.core.errors import MemoriaError
from memoria.repositories.json_store import JsonRecordStore
from memoria.services.index import MediaIndex
from memoria.services.thumbnails import ThumbnailCache, ThumbnailQueue
from memoria.services.watcher import MediaWatcher

logger = logging.getLogger(__name__)


async def memoria_error_handler(request: Request, exc: MemoriaError) -> JSONResponse:
    # same body shape as HTTPException
    return JSONResponse({"detail": exc.message}, status_code=exc.status, headers=exc.headers or None)


def create_app(settings: Optional[Settings] = None, *, watch: Optional[bool] = None) -> FastAPI:
    """
    Build the API and its services. `watch` overrides [watcher].enabled
    (tests pass watch=False and drive the watcher by hand).
    """
    settings = settings or get_settings()
    watch = settings.watch_enabled if watch is None else watch

    thumbnails = ThumbnailCache(
        settings.thumb_dir,
        size=settings.thumb_size,
        quality=settings.thumb_quality,
        video_offset=settings.video_offset,
        ffmpeg=settings.ffmpeg,
        ffprobe=settings.ffprobe,
        timeout=settings.ffmpeg_timeout,
    )
    thumb_queue = ThumbnailQueue(thumbnails, workers=settings.thumb_workers)
    index = MediaIndex(settings.media_root, thumb_queue.submit, ext_table=settings.ext_table)
    watcher = MediaWatcher(
        settings.media_root,
        index,
        stability_seconds=settings.stability_seconds,
        poll_interval=settings.poll_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        thumbnails.prepare()
        if watch:
            watcher.start()
        logger.info("Media root: %s", settings.media_root)
        try:
            yield
        finally:
            watcher.stop()
            thumb_queue.shutdown(wait=False)

    app = FastAPI(title="Memoria API", version="0.1", lifespan=lifespan)

    app.state.settings = settings
    app.state.thumbnails = thumbnails
    app.state.thumb_queue = thumb_queue
    app.state.index = index
    app.state.watcher = watcher
    app.state.stories = JsonRecordStore(settings.stories_path, name="story")
    app.state.travel_pins = JsonRecordStore(settings.travel_pins_path, name="travel pin")

    # CORS (allow Vite dev)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
    )

    app.add_exception_handler(MemoriaError, memoria_error_handler)

    # API routers
    app.include_router(memories.api_router, prefix="/api")
    app.include_router(stories.api_router, prefix="/api")
    app.include_router(travel.api_router, prefix="/api")

    # public (non-API) router for serving originals
    app.include_router(memories.public_router)  # /media/*
    return app
