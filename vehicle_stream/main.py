from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from vehicle_stream.adapters.api.controllers.vehicles import router as vehicles_router
from vehicle_stream.adapters.api.dependencies import (
    build_runtime,
    get_snapshot_publisher,
    get_snapshot_store,
    get_trip_cache,
)
from vehicle_stream.adapters.api.schemas.vehicles import HealthSchema
from vehicle_stream.adapters.config import RuntimeConfig
from vehicle_stream.app.services.snapshot_store import SnapshotPublisher, SnapshotStore
from vehicle_stream.app.services.trip_metadata_cache import TripMetadataCache
from vehicle_stream.domain.exceptions import ArchiveError

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    config = RuntimeConfig.from_env()
    runtime = build_runtime(config)
    app.state.runtime = runtime

    # A failed initial load is not fatal: the first unknown trip in the feed
    # triggers another attempt.
    try:
        await runtime.trip_cache.refresh()
    except ArchiveError as exc:
        logger.warning("Could not load initial trips data: %s", exc)

    task: asyncio.Task[None] | None = None
    if config.update_loop_enabled:
        task = asyncio.create_task(runtime.update_loop.run_forever())
        logger.info(
            "Update loop started (every %.1fs from %s)",
            config.update_interval_s,
            config.feed_url,
        )

    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


app = FastAPI(title="Vehicle Stream", lifespan=lifespan)
app.include_router(vehicles_router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map clients get a JSON body on 500s instead of a plain-text page.

    Messages are hidden unless `reveal_errors` is configured. A RuntimeError
    (e.g. a request served before startup finished) is always shown.
    """

    logger.exception("Unhandled exception on %s", request.url.path)

    runtime = getattr(request.app.state, "runtime", None)
    reveal = runtime is not None and runtime.config.reveal_errors

    if reveal or isinstance(exc, RuntimeError):
        detail = str(exc) or exc.__class__.__name__
    else:
        detail = "Internal Server Error"

    return JSONResponse(status_code=500, content={"detail": detail})


@app.get("/health", response_model=HealthSchema)
def health(
    store: SnapshotStore = Depends(get_snapshot_store),
    publisher: SnapshotPublisher = Depends(get_snapshot_publisher),
    trip_cache: TripMetadataCache = Depends(get_trip_cache),
) -> HealthSchema:
    return HealthSchema(
        status="ok",
        timestamp=store.current().timestamp,
        subscribers=publisher.subscriber_count,
        schedule_version=trip_cache.version or None,
    )
