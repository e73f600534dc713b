"""Prometheus counters for account workflows."""

from __future__ import annotations

from prometheus_client import Counter

REGISTRATIONS = Counter(
    "identity_registrations_total",
    "Account registration attempts by outcome.",
    ["outcome"],
)
LOGINS = Counter(
    "identity_logins_total",
    "Password login attempts by outcome.",
    ["outcome"],
)
LOOKUPS = Counter(
    "identity_lookups_total",
    "Bearer token identity resolutions by outcome.",
    ["outcome"],
)
