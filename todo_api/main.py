"""FastAPI application for the todo server: REST API, realtime updates and the SPA."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from todo_api import config, database
from todo_api.broadcaster import ChangeBroadcaster
from todo_api.routes.categories import router as categories_router
from todo_api.routes.todos import router as todos_router
from todo_api.routes.updates import router as updates_router

logger = logging.getLogger(__name__)


def create_app(
    engine: Optional[Engine] = None,
    broadcaster: Optional[ChangeBroadcaster] = None,
    seed: bool = config.SEED_CATEGORIES,
    static_dir=config.STATIC_DIR,
) -> FastAPI:
    """Build the application around an engine and a change broadcaster."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create database tables on startup via SQLModel create_all."""
        database.create_db_and_tables(app.state.engine, seed=seed)
        yield

    app = FastAPI(title="Todo Server", lifespan=lifespan)
    app.state.engine = engine if engine is not None else database.engine
    app.state.broadcaster = broadcaster if broadcaster is not None else ChangeBroadcaster()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )

    @app.get("/api/health")
    def health_check():
        """Health check endpoint."""
        db_ok = database.check_database(app.state.engine)
        return {"ok": db_ok, "db": "ok" if db_ok else "unavailable"}

    app.include_router(todos_router)
    app.include_router(categories_router)
    app.include_router(updates_router)

    if static_dir is not None:
        static_dir = Path(static_dir)
        if static_dir.is_dir():
            app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
        else:
            logger.info("Static directory %s not found; serving API only", static_dir)

    return app


app = create_app()


def run() -> None:
    """Run the server with uvicorn."""
    import uvicorn

    logging.basicConfig(level=config.LOG_LEVEL)
    logger.info("Server listening on %s:%d", config.HOST, config.PORT)
    uvicorn.run("todo_api.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
