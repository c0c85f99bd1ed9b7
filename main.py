import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import install_error_handlers
from api.routes.library import router as library_router
from api.routes.papers import router as papers_router
from papershelf.config import Config, setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    from papershelf.database.db.models import Base
    from papershelf.database.db.session import engine
    from papershelf.scheduler.scheduler_service import get_scheduler

    setup_logging()
    Base.metadata.create_all(bind=engine)

    scheduler = get_scheduler() if Config.enrichment.enabled else None
    logger.info("🌿 PaperShelf API ready")
    yield

    if scheduler:
        scheduler.shutdown()


def create_app() -> FastAPI:
    app = FastAPI(title="PaperShelf API", lifespan=lifespan)

    is_dev = os.getenv("ENV", "development") == "development"
    cors_origins = (
        ["*"]
        if is_dev
        else [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=not is_dev,  # "*" cannot be combined with credentials
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(library_router)
    app.include_router(papers_router)

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
