### docsign/worker/start_worker.py

"""
Celery worker startup script

Starts a worker consuming the signing event delivery tasks.
"""

# Local imports
from docsign.core.config import settings
from docsign.core.celery_app import app


def start_worker():
    """Start the celery worker."""

    argv = [
        "worker",
        f"--loglevel={settings.log_level.lower()}",
        "--concurrency=2",
        "--max-tasks-per-child=100",
        "--prefetch-multiplier=1",
    ]

    print("Starting Celery worker ...")
    print(f"Broker: {settings.celery_broker}")

    app.worker_main(argv)


if __name__ == "__main__":
    start_worker()
