"""Dense matrix applied along the last dimension."""

from typing import Sequence

import torch

from linops.exceptions.exceptions import ContractViolation
from linops.operators.LinearOperator import LinearOperator, _shared_operators


class _MatrixData:
    def __init__(self, matrix: torch.Tensor):
        self.matrix = matrix
        self.gram = matrix.conj().transpose(-2, -1) @ matrix


def _cast(m: torch.Tensor, x: torch.Tensor):
    dtype = torch.promote_types(m.dtype, x.dtype)
    return m.to(dtype=dtype, device=x.device), x.to(dtype)


def _matrix_forward(data: _MatrixData, x):
    m, x = _cast(data.matrix, x)
    return torch.einsum("ij,...j->...i", m, x)


def _matrix_adjoint(data: _MatrixData, y):
    m, y = _cast(data.matrix, y)
    return torch.einsum("ji,...j->...i", m.conj(), y)


def _matrix_normal(data: _MatrixData, x):
    g, x = _cast(data.gram, x)
    return torch.einsum("ij,...j->...i", g, x)


def _matrix_pinverse(data: _MatrixData, lam, y):
    rhs = _matrix_adjoint(data, y)
    g, rhs = _cast(data.gram, rhs)
    eye = torch.eye(g.shape[0], dtype=g.dtype, device=g.device)
    return torch.linalg.solve(g + lam * eye, rhs.unsqueeze(-1)).squeeze(-1)


class MatrixOperator(LinearOperator):
    """
    Apply an (m x n) matrix M to the last dimension of the input.

    The normal operator uses the precomputed Gram matrix M^H M and the
    pseudo-inverse solves (M^H M + lambda I) z = M^H y directly.

    Parameters
    ----------
    matrix : torch.Tensor
        Two dimensional tensor of shape (m, n).
    batch_dims : sequence of int, optional
        Leading dimensions the matrix is broadcast over.
    """

    def __init__(self, matrix: torch.Tensor, batch_dims: Sequence[int] = ()):
        if matrix.dim() != 2:
            raise ContractViolation(
                f"Expected a two dimensional matrix, got shape {tuple(matrix.shape)}"
            )
        m, n = matrix.shape
        batch_dims = tuple(batch_dims)
        self.matrix = matrix
        super().__init__(
            *_shared_operators(
                batch_dims + (n,),
                batch_dims + (m,),
                _MatrixData(matrix),
                _matrix_forward,
                _matrix_adjoint,
                _matrix_normal,
                _matrix_pinverse,
                None,
            )
        )
