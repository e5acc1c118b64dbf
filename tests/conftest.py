import pytest

from main import app, limiter
from repositories import InMemoryAccountRepository, get_account_repository


@pytest.fixture(autouse=True)
def repo():
    """Give each test its own empty ledger and a fresh rate limit window."""
    repository = InMemoryAccountRepository()
    app.dependency_overrides[get_account_repository] = lambda: repository
    limiter.reset()
    yield repository
    app.dependency_overrides.clear()
