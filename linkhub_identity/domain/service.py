"""Account service orchestrating validation, persistence, and token issuance."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import logging
from typing import Protocol

import jwt

from .account import Account, AccountType
from .contracts import LoginInput, NewAccountRecord, RegisterAccountInput
from .errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from .. import metrics
from ..repository import DuplicateEmailError
from ..security.passwords import hash_password, verify_password
from ..security.tokens import decode_access_token, issue_access_token

logger = logging.getLogger(__name__)


class AccountStore(Protocol):
    """Persistence capability the service depends on."""

    def email_exists(self, email: str) -> bool: ...

    def create_account(self, record: NewAccountRecord) -> Account: ...

    def get_account(self, account_id: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...


@dataclass(slots=True)
class Session:
    """An account together with a freshly issued bearer token."""

    account: Account
    access_token: str
    expires_in: int


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


@lru_cache(maxsize=1)
def _unknown_account_digest() -> str:
    """Digest checked when the email is unknown so both login failures cost one bcrypt run."""
    return hash_password("linkhub-identity-unknown-account")


class AccountService:
    """Account workflows backed by an :class:`AccountStore`."""

    def __init__(self, repository: AccountStore) -> None:
        self._repository = repository

    def register(self, payload: RegisterAccountInput) -> Session:
        """Create an account and issue its first token.

        Raises
        ------
        ValidationError
            A field is missing, blank, or not encodable as UTF-8, or the account
            type is unknown.
        ConflictError
            The email is already registered.
        """
        required = (
            payload.first_name,
            payload.last_name,
            payload.email,
            payload.password,
            payload.account_type,
        )
        if any(_blank(value) for value in required):
            metrics.REGISTRATIONS.labels(outcome="invalid").inc()
            raise ValidationError("All fields are required")
        if not all(_encodable(value) for value in required):
            metrics.REGISTRATIONS.labels(outcome="invalid").inc()
            raise ValidationError("Fields must be valid UTF-8 text")
        try:
            account_type = AccountType(payload.account_type)
        except ValueError:
            metrics.REGISTRATIONS.labels(outcome="invalid").inc()
            raise ValidationError("Invalid account type") from None

        email = payload.email.strip()
        if self._repository.email_exists(email):
            metrics.REGISTRATIONS.labels(outcome="conflict").inc()
            raise ConflictError("User with this email already exists")

        record = NewAccountRecord(
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            email=email,
            password_hash=hash_password(payload.password),
            account_type=account_type.value,
        )
        try:
            account = self._repository.create_account(record)
        except DuplicateEmailError:
            # lost a race with a concurrent registration for the same email
            metrics.REGISTRATIONS.labels(outcome="conflict").inc()
            raise ConflictError("User with this email already exists") from None

        metrics.REGISTRATIONS.labels(outcome="created").inc()
        logger.info("account registered id=%s type=%s", account.account_id, account.account_type.value)
        return self._session_for(account)

    def authenticate(self, payload: LoginInput) -> Session:
        """Exchange an email and password for a bearer token."""
        if _blank(payload.email) or not payload.password:
            metrics.LOGINS.labels(outcome="invalid").inc()
            raise ValidationError("Email and password are required")
        if not (_encodable(payload.email) and _encodable(payload.password)):
            metrics.LOGINS.labels(outcome="invalid").inc()
            raise ValidationError("Fields must be valid UTF-8 text")

        account = self._repository.find_by_email(payload.email.strip())
        if account is None:
            verify_password(payload.password, _unknown_account_digest())
            matched = False
        else:
            matched = verify_password(payload.password, account.password_hash)
        if not matched:
            metrics.LOGINS.labels(outcome="rejected").inc()
            logger.info("login rejected for unknown email or bad password")
            raise AuthenticationError("Invalid email or password")

        metrics.LOGINS.labels(outcome="success").inc()
        return self._session_for(account)

    def resolve_identity(self, token: str | None) -> Account:
        """Verify a bearer token and return the account it was issued for.

        The token is verified before any storage access, so a bad token never
        reaches the repository.
        """
        if not token:
            metrics.LOOKUPS.labels(outcome="missing_token").inc()
            raise AuthenticationError("Authorization token required")
        try:
            claims = decode_access_token(token)
        except jwt.PyJWTError as exc:
            metrics.LOOKUPS.labels(outcome="invalid_token").inc()
            logger.debug("rejected bearer token: %s", exc)
            raise AuthenticationError("Invalid token") from exc

        account = self._repository.get_account(claims["sub"])
        if account is None:
            metrics.LOOKUPS.labels(outcome="not_found").inc()
            raise NotFoundError("User not found")

        metrics.LOOKUPS.labels(outcome="resolved").inc()
        return account

    def _session_for(self, account: Account) -> Session:
        token, expires_in = issue_access_token(
            subject=account.account_id,
            account_type=account.account_type.value,
        )
        return Session(account=account, access_token=token, expires_in=expires_in)
