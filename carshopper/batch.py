# carshopper/batch.py
"""Embedding batch job: attach embeddings to catalog vehicles that lack one.

Each run selects up to `limit` unembedded vehicles and embeds them one at a
time, sleeping between provider calls to stay under its rate limit. A vehicle
that fails is left unembedded for a later run. Runs must not overlap; the
scheduler enforces a single instance.
"""
import os
import asyncio
import argparse
from typing import Optional
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from . import crud
from .db import database_url_from_env, make_engine, make_session_factory
from .embeddings import EmbeddingClient, describe_vehicle
from .errors import EmbeddingUnavailable
from .schemas import BatchResult
from .utils import logger

load_dotenv()

EMBED_BATCH_LIMIT = int(os.getenv("EMBED_BATCH_LIMIT", "20"))
EMBED_DELAY_SECONDS = float(os.getenv("EMBED_DELAY_SECONDS", "0.5"))


class EmbeddingBatchJob:
    def __init__(self, session_factory, client: EmbeddingClient, delay_seconds: float = EMBED_DELAY_SECONDS):
        self.session_factory = session_factory
        self.client = client
        self.delay_seconds = delay_seconds

    def _candidates(self, limit: int):
        with self.session_factory() as db:
            return [(v.id, describe_vehicle(v)) for v in crud.vehicles_missing_embedding(db, limit)]

    def _attach(self, vehicle_id: int, vector) -> bool:
        with self.session_factory() as db:
            return crud.attach_embedding(db, vehicle_id, vector)

    async def run(self, limit: int = EMBED_BATCH_LIMIT) -> BatchResult:
        result = BatchResult()
        candidates = await asyncio.to_thread(self._candidates, limit)
        if not candidates:
            logger.info("No vehicles waiting for embeddings")
            return result
        logger.info("Embedding %d vehicles", len(candidates))

        for n, (vehicle_id, text) in enumerate(candidates):
            if n and self.delay_seconds:
                await asyncio.sleep(self.delay_seconds)
            try:
                vector = await self.client.embed(text, task_type="retrieval_document")
                attached = await asyncio.to_thread(self._attach, vehicle_id, vector)
            except (EmbeddingUnavailable, SQLAlchemyError) as e:
                logger.error("Error embedding vehicle %s: %s", vehicle_id, e)
                result.failed += 1
                continue
            if attached:
                result.embedded += 1
            else:
                logger.info("Vehicle %s was embedded by another run", vehicle_id)

        logger.info("Batch complete: %d embedded, %d failed", result.embedded, result.failed)
        return result


def run_embedding_batch(session_factory, client: EmbeddingClient, limit: int = EMBED_BATCH_LIMIT,
                        delay_seconds: Optional[float] = None) -> BatchResult:
    """Synchronous entry point for the scheduler and the CLI."""
    delay = EMBED_DELAY_SECONDS if delay_seconds is None else delay_seconds
    job = EmbeddingBatchJob(session_factory, client, delay_seconds=delay)
    return asyncio.run(job.run(limit))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Attach embeddings to catalog vehicles that lack one.")
    parser.add_argument("--limit", type=int, default=EMBED_BATCH_LIMIT, help="max vehicles to embed this run")
    parser.add_argument("--delay", type=float, default=EMBED_DELAY_SECONDS, help="seconds between provider calls")
    args = parser.parse_args(argv)

    engine = make_engine(database_url_from_env())
    try:
        result = run_embedding_batch(make_session_factory(engine), EmbeddingClient.from_env(),
                                     limit=args.limit, delay_seconds=args.delay)
    finally:
        engine.dispose()
    print(f"embedded={result.embedded} failed={result.failed}")
    return 0 if result.failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
