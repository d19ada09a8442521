# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - drops.py: Drop CRUD and access log export (owner)
# - stats.py: Dashboard counters
# - uploads.py: Drop file uploads
# - access.py: Public recipient flow (availability, verify, content)
# - usage.py: Usage counters
# - subscriptions.py: Plan limit checks
# - payments.py: Checkout, subscription management, webhook
# - notifications.py: Recipient notification emails
# - tasks.py: Background task status endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import drops
from . import stats
from . import uploads
from . import access
from . import usage
from . import subscriptions
from . import payments
from . import notifications
from . import tasks

__all__ = [
    "health",
    "drops",
    "stats",
    "uploads",
    "access",
    "usage",
    "subscriptions",
    "payments",
    "notifications",
    "tasks",
]
