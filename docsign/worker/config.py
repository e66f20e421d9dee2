### docsign/worker/config.py

"""
Celery configuration settings

Broker and result backend, serialization, timezone and the beat schedule.
"""

# Third party imports
from celery.schedules import crontab

# Local imports
from docsign.core.config import settings

# Broker and result backend configurations
broker_url = settings.celery_broker
result_backend = settings.celery_backend

# Task serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task settings
task_track_started = True
task_time_limit = 5 * 60
task_soft_time_limit = 4 * 60
worker_prefetch_multiplier = 1
task_acks_late = True
worker_disable_rate_limits = False


# Beat schedule configuration
beat_schedule = {
    # Retry delivery of signing events the request path did not publish
    "dispatch-signing-events": {
        "task": "docsign.notifications.tasks.dispatch_signing_events",
        "schedule": crontab(minute="*"),
    },
}
