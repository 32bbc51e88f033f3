from typing import Optional, Sequence

import torch

from linops.num.flpmath import CFL_DTYPE, rss, zdot
from linops.operators.GradientOp import Gradient


def grad_magnitude(x: torch.Tensor, flags: int) -> torch.Tensor:
    """
    Magnitude of the finite difference gradient of ``x``.

    Root of the sum of squares of the partial derivatives along the
    dimensions selected by ``flags``; same shape as ``x``.
    """
    with Gradient(x.shape, flags) as op:
        g = op.forward_unchecked(x)
    return rss(g, (-1,))


def _randn(dims: Sequence[int], dtype, device, generator):
    return torch.randn(tuple(dims), dtype=dtype, device=device, generator=generator)


def dot_test(
    op,
    dtype: torch.dtype = CFL_DTYPE,
    device: Optional[torch.device] = None,
    rtol: float = 1e-5,
    generator: Optional[torch.Generator] = None,
) -> bool:
    """
    Check that the adjoint of ``op`` matches its forward operation.

    Compares <A x, y> with <x, A^H y> for random x and y.

    Parameters
    ----------
    op : LinearOperator
        Operator to test.
    dtype : torch.dtype, optional
        Type of the random test vectors, complex64 by default.
    device : torch.device, optional
        Where to allocate the test vectors.
    rtol : float, optional
        Relative tolerance of the comparison.
    generator : torch.Generator, optional
        Source of randomness, for reproducible tests.

    Returns
    -------
    bool
        True if both inner products agree.
    """
    x = _randn(op.domain.dims, dtype, device, generator)
    y = _randn(op.codomain.dims, dtype, device, generator)

    lhs = zdot(op.forward(x), y)
    rhs = zdot(x, op.adjoint(y))

    scale = max(float(torch.abs(lhs)), float(torch.abs(rhs)), 1e-30)
    return float(torch.abs(lhs - rhs)) <= rtol * scale


def normal_test(
    op,
    dtype: torch.dtype = CFL_DTYPE,
    device: Optional[torch.device] = None,
    rtol: float = 1e-5,
    generator: Optional[torch.Generator] = None,
) -> bool:
    """Check that the normal operation of ``op`` equals adjoint after forward."""
    x = _randn(op.domain.dims, dtype, device, generator)
    a = op.normal(x)
    b = op.adjoint(op.forward(x))
    scale = max(float(torch.linalg.vector_norm(b)), 1e-30)
    return float(torch.linalg.vector_norm(a - b)) <= rtol * scale


def power_method(op, maxiter=100, tol=1e-6, dtype=CFL_DTYPE, generator=None):
    """
    Estimate the largest singular value of ``op``.

    Iterates the normal operation (or adjoint after forward when the operator
    has no normal) on a random start vector.
    """
    def normal(v):
        if op.has_normal:
            return op.normal_unchecked(v)
        return op.adjoint_unchecked(op.forward_unchecked(v))

    x = _randn(op.domain.dims, dtype, None, generator)
    x = x / torch.linalg.vector_norm(x)
    sigma = 0.0
    for _ in range(maxiter):
        z = normal(x)
        norm = float(torch.linalg.vector_norm(z))
        if norm == 0:
            return 0.0
        x = z / norm
        sigma_new = norm ** 0.5
        if abs(sigma_new - sigma) <= tol * sigma_new:
            return sigma_new
        sigma = sigma_new

    return sigma
