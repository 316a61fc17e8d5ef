"""
Celery worker entry point.

Imports the Celery app and league tasks from the API module. Run with:
    celery -A main worker --beat
"""
import sys

# Add API directory to path so we can import tasks
sys.path.insert(0, '/api')

from tasks import celery_app  # noqa: E402

celery_app.autodiscover_tasks(['tasks'])


@celery_app.task(name="worker.health_check")
def health_check():
    """Health check task"""
    return {"status": "ok"}
