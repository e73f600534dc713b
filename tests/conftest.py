from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from linkhub_identity.api import routes
from linkhub_identity.api.errors import register_error_handlers
from linkhub_identity.domain.account import Account, AccountType
from linkhub_identity.domain.contracts import NewAccountRecord
from linkhub_identity.domain.service import AccountService
from linkhub_identity.repository import DuplicateEmailError
from linkhub_identity.security import passwords


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed behaviours."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.lookups = 0

    def email_exists(self, email: str) -> bool:
        return any(account.email.lower() == email.lower() for account in self.accounts.values())

    def create_account(self, record: NewAccountRecord) -> Account:
        if self.email_exists(record.email):
            raise DuplicateEmailError(record.email)
        now = datetime.now(timezone.utc)
        account = Account(
            account_id=str(uuid.uuid4()),
            first_name=record.first_name,
            last_name=record.last_name,
            email=record.email,
            password_hash=record.password_hash,
            account_type=AccountType(record.account_type),
            created_at=now,
            updated_at=now,
        )
        self.accounts[account.account_id] = account
        return account

    def get_account(self, account_id: str) -> Account | None:
        self.lookups += 1
        return self.accounts.get(account_id)

    def find_by_email(self, email: str) -> Account | None:
        for account in self.accounts.values():
            if account.email.lower() == email.lower():
                return account
        return None


def build_app(service: AccountService) -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(routes.router)
    app.state.account_service = service
    return app


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Keep hashing cheap in tests; production uses the fixed work factor."""
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def service(repository) -> AccountService:
    return AccountService(repository)


@pytest.fixture
def api_client(service, repository):
    """Provide a FastAPI test client with isolated state."""
    app = build_app(service)

    original_limiter = routes.rate_limiter
    routes.rate_limiter = routes.SlidingWindowRateLimiter(max_requests=10, window_seconds=60)

    with TestClient(app) as client:
        yield client, repository

    routes.rate_limiter = original_limiter


@pytest.fixture
def ada() -> dict[str, str]:
    return {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "ada@example.com",
        "password": "s3cret!",
        "accountType": "individual",
    }
