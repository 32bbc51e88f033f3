from linops.exceptions.exceptions import (
    ContractViolation,
    LinopException,
    ShapeMismatch,
)

__all__ = ["ContractViolation", "LinopException", "ShapeMismatch"]
