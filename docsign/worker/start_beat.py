### docsign/worker/start_beat.py

"""
Celery Beat Startup Script

Triggers the periodic tasks defined in config.py
"""

# Local imports
from docsign.core.celery_app import app
from docsign.core.config import settings


def start_beat():
    """Start the celery beat scheduler."""

    argv = [
        "beat",
        f"--loglevel={settings.log_level.lower()}",
        "--scheduler=celery.beat:PersistentScheduler",
        "--schedule=/tmp/docsign-celerybeat-schedule",
        "--pidfile=/tmp/docsign-celerybeat.pid",
    ]

    print("Starting Celery Beat Scheduler ...")
    print("Scheduled tasks:")
    for task_name, task_config in app.conf.beat_schedule.items():
        print(f"- {task_name}: {task_config['task']} -> {task_config['schedule']}")

    app.start(argv)


if __name__ == "__main__":
    start_beat()
