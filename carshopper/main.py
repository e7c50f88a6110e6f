# carshopper/main.py
import os
from fastapi import FastAPI
from .api.routes import router as api_router
from .db import create_tables, database_url_from_env, make_engine, make_session_factory
from .embeddings import EmbeddingClient
from .scheduler import start_embedding_scheduler
from .services import CarShopperService
from .utils import logger

def create_app(session_factory=None, embedder=None, create_schema: bool = True) -> FastAPI:
    """Build the API. Store and provider handles are created here unless injected."""
    engine = None
    if session_factory is None:
        engine = make_engine(database_url_from_env())
        session_factory = make_session_factory(engine)
    embedder = embedder or EmbeddingClient.from_env()

    app = FastAPI(title="CarShopper")
    app.state.service = CarShopperService(session_factory, embedder)
    app.include_router(api_router)

    @app.on_event("startup")
    def on_startup():
        if create_schema:
            create_tables(session_factory.kw["bind"])
        interval = os.getenv("EMBED_INTERVAL_MINUTES")
        if interval:
            app.state.scheduler = start_embedding_scheduler(session_factory, embedder, float(interval))

    @app.on_event("shutdown")
    def on_shutdown():
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        if engine is not None:
            engine.dispose()
        logger.info("CarShopper API stopped")

    return app
