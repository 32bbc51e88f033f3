"""
Finite difference gradient over a selection of dimensions.

The partial derivatives are stacked along an extra trailing dimension: for an
input of shape ``dims`` and ``K`` selected dimensions the output has shape
``dims + (K,)``.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import torch

from linops.exceptions.exceptions import ContractViolation
from linops.num.flpmath import (
    add,
    alloc_sameplace,
    bitcount,
    clear,
    fdiff,
    fdiff_backwards,
    flags_to_dims,
)
from linops.num.iovec import IOVec
from linops.operators.LinearOperator import LinearOperator, _shared_operators
from linops.utils.parameter import LinopParameter


@dataclass(frozen=True)
class GradientData:
    dims: Tuple[int, ...]
    flags: int
    grad_dims: Tuple[int, ...]

    @property
    def K(self) -> int:
        return len(self.grad_dims)

    @property
    def odims(self) -> Tuple[int, ...]:
        return self.dims + (self.K,)


def grad_op(data: GradientData, x: torch.Tensor) -> torch.Tensor:
    out = alloc_sameplace(data.odims, x)
    # the last dimension holds the partial derivatives
    assert out.shape[-1] == data.K
    for i, d in enumerate(data.grad_dims):
        out[..., i] = fdiff(x, d)
    return out


def grad_adjoint(data: GradientData, y: torch.Tensor) -> torch.Tensor:
    assert y.shape[-1] == data.K
    out = clear(alloc_sameplace(data.dims, y))
    for i, d in enumerate(data.grad_dims):
        tmp = fdiff_backwards(y[..., i], d)
        add(out, out, tmp)
    return out


def grad_normal(data: GradientData, x: torch.Tensor) -> torch.Tensor:
    # TODO: a fused per-dimension second difference would avoid the K-times larger temporary
    return grad_adjoint(data, grad_op(data, x))


class Gradient(LinearOperator):
    """
    Stacked forward finite differences along the dimensions selected by ``flags``.

    Parameters
    ----------
    dims : sequence of int
        Shape of the input (domain).
    flags : int
        Bitmask of the dimensions to differentiate; bit ``d`` selects dimension ``d``.
    codomain : IOVec or sequence of int, optional
        Expected output shape. Only used as a check: it must be ``dims + (K,)``
        where ``K`` is the number of selected dimensions.

    Raises
    ------
    ContractViolation
        If ``flags`` selects dimensions outside of ``dims`` or ``codomain``
        disagrees with the derived output shape.
    """

    def __init__(
        self,
        dims: Sequence[int],
        flags: int,
        codomain: Optional[Union[IOVec, Sequence[int]]] = None,
    ):
        dims = tuple(int(d) for d in dims)
        flags = int(flags)
        if flags < 0:
            raise ContractViolation(f"Selection flags must be non-negative, got {flags}")
        if flags >> len(dims):
            raise ContractViolation(
                f"Selection flags {flags:#b} select dimensions beyond rank {len(dims)}"
            )

        self._grad = GradientData(dims, flags, flags_to_dims(flags))
        assert self._grad.K == bitcount(flags)

        if codomain is not None:
            cdims = codomain.dims if isinstance(codomain, IOVec) else tuple(codomain)
            if tuple(cdims) != self._grad.odims:
                raise ContractViolation(
                    f"Codomain {tuple(cdims)} does not match gradient output "
                    f"{self._grad.odims} ({self._grad.K} selected dimensions)"
                )

        super().__init__(
            *_shared_operators(
                dims,
                self._grad.odims,
                self._grad,
                grad_op,
                grad_adjoint,
                grad_normal,
                None,
                None,
            )
        )

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._grad.dims

    @property
    def flags(self) -> int:
        return self._grad.flags

    @property
    def grad_dims(self) -> Tuple[int, ...]:
        return self._grad.grad_dims

    @property
    def K(self) -> int:
        return self._grad.K

    @staticmethod
    def default_parameters() -> LinopParameter:
        param = LinopParameter()
        param.dims = None
        param.flags = None
        return param

    @classmethod
    def from_parameters(cls, param: LinopParameter) -> "Gradient":
        param.is_filled()
        return cls(param.dims, param.flags)
