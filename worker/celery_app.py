from celery import Celery

from marketplace.core.config import settings

celery = Celery(
    "marketplace-worker",
    broker=settings.rabbitmq_url,
    backend=settings.redis_url,
    include=["worker.tasks"],
)

celery.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "worker.tasks.process_outbox_event": {"queue": "outbox"},
        "worker.tasks.publish_approved_listings": {"queue": "publish"},
    },
    beat_schedule={
        "publish-approved-listings": {
            "task": "worker.tasks.publish_approved_listings",
            "schedule": 60.0,
        },
    },
)
