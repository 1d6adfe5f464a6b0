"""Unit tests for RepairDesk web route modules.

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Override the tenant and storage dependencies with mocks
    - Test error mapping and request/response validation
"""
