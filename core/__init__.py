# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the drop, access, usage and billing logic:
# - models/: Pydantic schemas for data validation
# - services/: Service classes called by the routers and workers
# - templates/: Email templates
#
# Code in this package should NOT import from Celery.
# Errors are raised as app.exceptions types so routers stay thin.
# =============================================================================
