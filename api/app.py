"""FastAPI application for taskflow."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.deps import set_db_path, set_max_dependencies
from api.routes import router
from api.ws import broadcast_events
from db.migrations import init_db
from taskflow.models import MAX_DEPENDENCIES_PER_TASK


def create_app(
    db_path: str,
    max_dependencies: int = MAX_DEPENDENCIES_PER_TASK,
    broadcast: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        db_path: Path to the SQLite database. Migrated on creation.
        max_dependencies: Per-task limit on blocking dependencies.
        broadcast: Start the websocket event broadcaster with the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        tasks: list[asyncio.Task[None]] = []
        if broadcast:
            tasks.append(asyncio.create_task(broadcast_events(db_path)))

        yield

        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    init_db(db_path).close()
    set_db_path(db_path)
    set_max_dependencies(max_dependencies)

    app = FastAPI(title="taskflow", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app
