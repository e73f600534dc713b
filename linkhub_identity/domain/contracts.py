"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RegisterAccountInput:
    """Raw registration fields as received from a client.

    Every field may be missing; :class:`~linkhub_identity.domain.service.AccountService`
    decides what is acceptable.
    """

    first_name: str | None
    last_name: str | None
    email: str | None
    password: str | None
    account_type: str | None


@dataclass(slots=True)
class NewAccountRecord:
    """Validated values handed to the repository for insertion."""

    first_name: str
    last_name: str
    email: str
    password_hash: str
    account_type: str


@dataclass(slots=True)
class LoginInput:
    email: str | None
    password: str | None
