"""Celery worker for settlement jobs that call the payment gateway.

Tasks are acknowledged only after they finish so a worker crash
redelivers them; capture and approval are both safe to repeat.
"""

from celery import Celery

from src.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "settlement",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.tasks.settlement"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="settlement",
)
