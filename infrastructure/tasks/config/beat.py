"""Celery beat schedule.

The stale-pending sweep demotes PENDING rows whose pending window has
passed; it backs up the in-process expiry timers, which do not survive a
restart and do not run at all with the Redis pending-order backend.
"""
from __future__ import annotations

from core.settings import payment_settings

CELERY_BEAT_SCHEDULE = {
    "payments-expire-stale-pending": {
        "task": "payments.expire_stale_pending",
        "schedule": 300,  # every 5 minutes
        "kwargs": {"older_than_seconds": payment_settings.pending.ttl_seconds, "limit": 100},
    },
}
