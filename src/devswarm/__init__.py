"""
devswarm: a swarm of autonomous software-development agents.

Agents claim work from a shared priority queue, reason about each task
through a four-phase cognitive pipeline, have their proposals checked by a
quality gate, and route every inference call to the cheapest model tier
that fits the budget.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("devswarm")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
