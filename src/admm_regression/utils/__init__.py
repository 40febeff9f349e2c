"""Diagnostics for fitted solutions."""

from .diagnostics import (
    objective_value,
    sparsity_analysis,
    support_recovery,
    reconstruction_quality,
    convergence_summary,
)

__all__ = [
    "objective_value",
    "sparsity_analysis",
    "support_recovery",
    "reconstruction_quality",
    "convergence_summary",
]
