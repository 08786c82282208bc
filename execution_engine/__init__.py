from .models import (
    Operation,
    OperationKind,
    OperationPlan,
    PlanningIssue,
    Protocol,
    ProtocolCategory,
    ProtocolSpec,
)
from .planner import (
    OperationPlanner,
    PlanValidationError,
    PlanningError,
    PlanningPolicy,
    quote_price,
    validate_plan,
)

__all__ = [
    "Operation",
    "OperationKind",
    "OperationPlan",
    "OperationPlanner",
    "PlanValidationError",
    "PlanningError",
    "PlanningIssue",
    "PlanningPolicy",
    "Protocol",
    "ProtocolCategory",
    "ProtocolSpec",
    "quote_price",
    "validate_plan",
]
