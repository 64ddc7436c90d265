# FILE: cleanhero-backend/tasks.py

import logging
from logging_config import setup_logging
from celery_worker import celery_app
from dependencies import get_ledger
from api.cache_utils import cache_impact_data

setup_logging()


@celery_app.task(bind=True, name="refresh_impact_data", max_retries=3, default_retry_delay=60)
def refresh_impact_data(self):
    """Recomputes the landing-page impact statistics and re-caches them."""
    try:
        data = get_ledger().get_impact_data().model_dump()
    except Exception as e:
        logging.error(f"Failed to refresh impact data: {e}", exc_info=True)
        raise self.retry(exc=e)
    cache_impact_data(data)
    logging.info(f"Refreshed impact data: {data}")
    return data
