# models/__init__.py
from .payment import PaymentStatus, PaymentPurpose
from .project import ProjectStatus, BudgetType, can_transition, transition_actor
from .proposal import ProposalStatus
from .rating import RATING_DIMENSIONS, running_average
from .transaction import TransactionType, Direction, TransactionStatus
from .user import Role, has_role, new_profile

__all__ = [
    "PaymentStatus",
    "PaymentPurpose",
    "ProjectStatus",
    "BudgetType",
    "can_transition",
    "transition_actor",
    "ProposalStatus",
    "RATING_DIMENSIONS",
    "running_average",
    "TransactionType",
    "Direction",
    "TransactionStatus",
    "Role",
    "has_role",
    "new_profile",
]
