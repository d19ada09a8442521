# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the DropAccess API:
# - conftest.py: In-memory Supabase fake and user fixtures
# - test_models.py: Unit tests for Pydantic model validation
# - test_tiers.py / test_periods.py / test_content.py: lib helpers
# - test_*_service.py: Service layer against the Supabase fake
# - test_routes.py: Endpoint tests through FastAPI's TestClient
#
# Run tests with: pytest
# =============================================================================
