"""Pointwise scaling, x -> s * x, with a scalar or a broadcastable tensor s."""

from typing import Sequence, Union

import torch

from linops.exceptions.exceptions import ContractViolation
from linops.operators.LinearOperator import LinearOperator, _shared_operators


class _ScalingData:
    def __init__(self, scale: Union[complex, float, torch.Tensor]):
        self.scale = scale
        if isinstance(scale, torch.Tensor):
            self.scale_conj = scale.conj()
            self.scale_sq = torch.abs(scale) ** 2
        else:
            self.scale_conj = scale.conjugate()
            self.scale_sq = abs(scale) ** 2


def _scale_forward(data: _ScalingData, x):
    return data.scale * x


def _scale_adjoint(data: _ScalingData, y):
    return data.scale_conj * y


def _scale_normal(data: _ScalingData, x):
    return data.scale_sq * x


def _scale_pinverse(data: _ScalingData, lam, y):
    return data.scale_conj * y / (data.scale_sq + lam)


class ScalingOperator(LinearOperator):
    """
    Multiply by ``scale``.

    Has a fused normal operator, |s|^2 x, and a closed form pseudo-inverse,
    conj(s) y / (|s|^2 + lambda).

    Parameters
    ----------
    dims : sequence of int
        Shape of the input and output.
    scale : scalar or torch.Tensor
        Scale factor, broadcastable to ``dims``.
    """

    def __init__(self, dims: Sequence[int], scale: Union[complex, float, torch.Tensor]):
        dims = tuple(dims)
        if isinstance(scale, torch.Tensor):
            try:
                shape = torch.broadcast_shapes(scale.shape, dims)
            except RuntimeError:
                shape = None
            if shape != torch.Size(dims):
                raise ContractViolation(
                    f"Scale of shape {tuple(scale.shape)} does not broadcast to {dims}"
                )
        self.scale = scale
        super().__init__(
            *_shared_operators(
                dims,
                dims,
                _ScalingData(scale),
                _scale_forward,
                _scale_adjoint,
                _scale_normal,
                _scale_pinverse,
                None,
            )
        )


def linop_identity(dims: Sequence[int]) -> ScalingOperator:
    return ScalingOperator(dims, 1.0)
