# models/transaction.py
from enum import Enum


class TransactionType(str, Enum):
    POSTING_FEE = "posting_fee"                  # client pays to post a project
    POSTING_FEE_ADJUST = "posting_fee_adjust"    # category change on an open project
    POSTING_FEE_REFUND = "posting_fee_refund"    # project cancelled
    PROPOSAL_FEE = "proposal_fee"                # freelancer pays to bid
    PROPOSAL_REFUND = "proposal_refund"          # bid rejected
    ESCROW_PAYMENT = "escrow_payment"            # client side of a payout
    ESCROW_RELEASE = "escrow_release"            # freelancer side of a payout
    TOPUP_COMPLETED = "topup_completed"
    WITHDRAW_REQUEST = "withdraw_request"


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Profile columns a ledger entry may move
BALANCE_FIELDS = ("credit", "total_earned", "total_spent")
