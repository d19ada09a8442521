# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers.
# =============================================================================

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge after completion so a crashed worker's task is redelivered
    task_acks_late = True
    worker_prefetch_multiplier = 1

    # Task results expire after 1 hour
    result_expires = 3600

    # One email request per recipient; 2 minutes covers large lists
    task_time_limit = 120
    task_soft_time_limit = 100

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "notifications": {
            "exchange": "notifications",
            "routing_key": "notifications",
        },
    }

    task_routes = {
        "workers.tasks.send_drop_notifications": {"queue": "notifications"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Retry Settings
    # -------------------------------------------------------------------------

    task_annotations = {
        "*": {
            "max_retries": 3,
            "default_retry_delay": 60,
        }
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    timezone = "UTC"
    enable_utc = True
