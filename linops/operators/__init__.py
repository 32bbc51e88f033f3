"""linops operators."""

from linops.operators.Operator import Operator, OperatorP, operator_chain
from linops.operators.LinearOperator import LinearOperator, linop_chain
from linops.operators.GradientOp import Gradient
from linops.operators.MatrixOp import MatrixOperator
from linops.operators.ScalingOp import ScalingOperator, linop_identity
from linops.operators.shared import SharedHandle, SharedPayload

__all__ = [
    "Gradient",
    "LinearOperator",
    "MatrixOperator",
    "Operator",
    "OperatorP",
    "ScalingOperator",
    "SharedHandle",
    "SharedPayload",
    "linop_chain",
    "linop_identity",
    "operator_chain",
]
