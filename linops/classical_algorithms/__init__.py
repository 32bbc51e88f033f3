"""linops classical algorithms."""

from linops.classical_algorithms.conjugate_gradient import (
    conjugate_gradient,
    linop_with_cg_pinverse,
)

__all__ = ["conjugate_gradient", "linop_with_cg_pinverse"]
