"""Identifier and timestamp helpers for rows written into the CRM tables."""

import uuid
from datetime import datetime, timezone


def new_id(prefix):
    """Opaque id like `ref_1a2b3c4d5e6f` (12 hex chars of a uuid4).

    Collisions are negligible, so callers insert without checking first.
    """
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def iso_now():
    """UTC timestamp in the `2024-01-15T12:00:00.000Z` form the CRM uses."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
