# pallet_orders/celery_worker.py
from celery import Celery

from pallet_orders.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
)

celery_app = Celery(
    "pallet_orders",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

#explicitly import task modules so the worker registers them
celery_app.conf.imports = (
    "pallet_orders.services.notification_service",
)

celery_app.conf.task_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"

#single box / tests: run detached tasks inline, errors stay inside the task result
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
celery_app.conf.task_eager_propagates = False
