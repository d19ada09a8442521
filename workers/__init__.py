# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# Celery configuration and task definitions for work that runs outside
# the request cycle.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (notification emails)
# - config.py: Worker-specific settings
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker -Q default,notifications --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import send_drop_notifications
#   result = send_drop_notifications.apply_async(args=[drop_id, emails, creator_email], task_id=new_task_id(owner_id))
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
