# carshopper/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .batch import run_embedding_batch, EMBED_BATCH_LIMIT
from .utils import logger

def start_embedding_scheduler(session_factory, client, minutes: float, limit: int = EMBED_BATCH_LIMIT):
    """Run the embedding batch job every `minutes`, never two runs at once."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_embedding_batch, 'interval', minutes=minutes,
        args=[session_factory, client], kwargs={"limit": limit},
        id="embedding-batch", max_instances=1, coalesce=True,
    )
    scheduler.start()
    logger.info("Embedding scheduler started (every %s min)", minutes)
    return scheduler
