"""Challenge rules: risk adjustment and status evaluation."""

from .evaluator import Evaluation, Status, compute_drawdown, evaluate
from .risk import clamp_risk, max_safe_risk, next_risk

__all__ = [
    "Evaluation",
    "Status",
    "compute_drawdown",
    "evaluate",
    "clamp_risk",
    "max_safe_risk",
    "next_risk",
]
