# general rule: if it's possible that error condition will occur at runtime, use an exception.
# asserts are only for states that a correct linops cannot reach.


class LinopException(Exception):
    pass


class ContractViolation(LinopException):
    """Misuse of an operator: a bug in the composing code, not in the data."""

    pass


class ShapeMismatch(LinopException, ValueError):
    """Tensor shapes given to a checked apply disagree with the operator."""

    pass
