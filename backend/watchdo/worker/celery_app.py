"""
Celery application for background jobs.

Broker/backend: Redis (REDIS_URL env).
Default queue: thumbnails.
"""
from celery import Celery

from watchdo.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "watchdo",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    task_default_queue="thumbnails",
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # must exceed task_time_limit so long generations are not redelivered
    broker_transport_options={"visibility_timeout": 15 * 60},
)

celery_app.autodiscover_tasks(["watchdo.worker"])
