"""
Payment specific codes shared by the webhook, checkout and verify flows.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004
    INVALID_PAYLOAD = 60005
    CHECKOUT_FAILED = 60006
    STATUS_NOT_FOUND = 60007
