# models/payment.py
from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"        # waiting for the gateway
    CONFIRMED = "confirmed"    # paid, credits granted
    FAILED = "failed"
    EXPIRED = "expired"        # replaced by a regenerated payment


class PaymentPurpose(str, Enum):
    TOPUP = "topup"


# Gateway statuses as they arrive on the webhook
GATEWAY_COMPLETED = "PAYMENT_COMPLETED"
GATEWAY_FAILURES = ("PAYMENT_FAILED", "PAYMENT_CANCELLED", "PAYMENT_EXPIRED")

# A payment in one of these states never changes again
SETTLED_PAYMENT_STATUSES = (PaymentStatus.CONFIRMED.value, PaymentStatus.FAILED.value)
