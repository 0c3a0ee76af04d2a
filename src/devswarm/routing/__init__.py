"""
Cost-aware model routing.
"""

from devswarm.routing.complexity import ComplexityEstimate, estimate_complexity
from devswarm.routing.ledger import UsageLedger
from devswarm.routing.router import ModelChoice, ModelRouter

__all__ = [
    "ModelRouter",
    "ModelChoice",
    "UsageLedger",
    "ComplexityEstimate",
    "estimate_complexity",
]
