"""
ReviewHub test suite.

- unit/: service-level tests against an in-memory SQLite database
- integration/: API tests through FastAPI's TestClient
- conftest.py: settings, database, model factories and service doubles

Run tests with: pytest
"""
