## docsign/core/celery_app.py

"""
Main Celery Application Configuration

Sets up the Celery application instance with Redis as broker and result backend
and registers the task modules.
"""

# Third party imports
from celery import Celery

# Create Celery Instance
app = Celery("docsign")

# Configure celery from separate config file
app.config_from_object("docsign.worker.config")

# Auto discover tasks.py modules in these packages
app.autodiscover_tasks([
    "docsign.notifications",
])

if __name__ == "__main__":
    app.start()
