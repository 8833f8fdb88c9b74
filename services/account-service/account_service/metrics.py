"""Prometheus counters for account workflows."""

from __future__ import annotations

from prometheus_client import Counter

REGISTRATIONS = Counter(
    "account_registrations_total",
    "Registration attempts by outcome.",
    ["outcome"],
)

LOGINS = Counter(
    "account_logins_total",
    "Login attempts by outcome.",
    ["outcome"],
)

ASSET_UPLOADS = Counter(
    "account_asset_uploads_total",
    "Asset uploads by outcome.",
    ["outcome"],
)
