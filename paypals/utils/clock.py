# paypals/utils/clock.py
# Naive UTC timestamps: the schema stores DateTime without tz on every backend.

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
