from celery import Celery
from celery.signals import after_setup_logger, after_setup_task_logger
from deploy_pipeline.core.config import settings
from deploy_pipeline.core.logging import secret_filter

celery_app = Celery("deploy_pipeline", broker=settings.redis_url, backend=settings.redis_url, include=["deploy_pipeline.tasks.runs"])
# runs are never retried by the queue; re-triggering is the retry path
celery_app.conf.update(task_track_started=True, task_acks_late=False, result_expires=3600, broker_connection_retry_on_startup=True,)


@after_setup_logger.connect
@after_setup_task_logger.connect
def install_secret_filter(logger=None, **kwargs):
    """Worker handlers mask the secrets of the runs executing in this process."""
    if logger is None:
        return
    for handler in logger.handlers:
        handler.addFilter(secret_filter)
