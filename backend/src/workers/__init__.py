"""Background workers for DocLifecycle.

Tasks live next to the code they drive (``retention.tasks``); this package
only holds the Celery application and its beat schedule.
"""

from .celery_app import celery_app

__all__ = ["celery_app"]
