"""
Gunicorn config. Reference data is loaded when app.py is imported; with
preload_app the master loads it once and forked workers share the
read-only dataset.

post_fork logs the dataset each worker inherited so a deploy with a
missing data directory is visible in the worker logs, not only in /healthz.
"""

import logging
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
preload_app = True


def post_fork(server, worker):
    """Report the dataset this worker will serve."""
    logger = logging.getLogger("gunicorn.error")
    try:
        from app import get_scorer
        dataset = get_scorer().dataset
        logger.info(
            "Worker %s serving %d amenities, %d polygons",
            worker.pid,
            len(dataset.amenities),
            len(dataset.polygons),
        )
    except Exception:
        logger.exception("Failed to load habitability dataset in worker %s", worker.pid)
