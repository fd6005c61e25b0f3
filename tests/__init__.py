"""
Test suite for the PokeTrade backend.

Test Categories:
- Unit tests: eligibility, catalog parsing, match ranking, list diffing
- Store / engine tests against an in-memory SQLite database
- API tests: HTTP endpoint tests over httpx.AsyncClient + ASGITransport

Running Tests:
- All tests: pytest
- API only: pytest -m api
- Skip slow: pytest -m "not slow"
"""
