from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AccountType(str, Enum):
    """Closed set of registrant kinds."""

    individual = "individual"
    organization = "organization"
    intermediary = "intermediary"


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered member.

    ``password_hash`` stays inside the service; API layers only ever see the
    projection built from the remaining fields.
    """

    account_id: str
    first_name: str
    last_name: str
    email: str
    password_hash: str
    account_type: AccountType
    created_at: datetime
    updated_at: datetime
