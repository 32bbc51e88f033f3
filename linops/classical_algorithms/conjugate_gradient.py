"""Conjugate gradient solver"""

import warnings
from typing import Callable, Optional

import torch

from linops.num.flpmath import zdot
from linops.operators.LinearOperator import LinearOperator
from linops.operators.Operator import OperatorP
from linops.utils.parameter import LinopParameter


def default_parameters() -> LinopParameter:
    param = LinopParameter()
    param.max_iter = 100
    param.tol = 1e-6
    return param


def conjugate_gradient(
    matmul_closure: Callable[[torch.Tensor], torch.Tensor],
    d: torch.Tensor,
    x0: torch.Tensor,
    max_iter: int,
    tol: float,
) -> torch.Tensor:
    """
    Conjugate gradient solver for Hermitian positive definite systems.

    Parameters
    ----------
    matmul_closure : Callable[[torch.Tensor], torch.Tensor]
        A function that performs the matrix-vector multiplication.
    d : torch.Tensor
        The right-hand side vector. Real or complex.
    x0 : torch.Tensor
        The initial guess for the solution.
    max_iter : int
        Maximum number of iterations.
    tol : float
        Tolerance on the residual norm, relative to the right-hand side.

    Returns
    -------
    torch.Tensor
        The approximate solution vector.

    """
    x = x0.clone()
    r = d - matmul_closure(x)
    p = r.clone()
    rr = zdot(r, r).real
    dnorm = torch.linalg.vector_norm(d)
    if dnorm == 0:
        return torch.zeros_like(x)

    for _ in range(max_iter):
        if torch.sqrt(rr) / dnorm < tol:
            return x

        z = matmul_closure(p)

        pz = zdot(p, z).real
        # Check for breakdown
        if abs(pz) < 1e-14:
            warnings.warn("Conjugate gradient broke down: search direction has zero curvature")
            return x
        alpha = rr / pz
        x += alpha * p
        r -= alpha * z

        rr_next = zdot(r, r).real
        beta = rr_next / rr
        p = r + beta * p
        rr = rr_next

    if torch.sqrt(rr) / dnorm >= tol:
        warnings.warn(
            f"Conjugate gradient did not converge in {max_iter} iterations "
            f"(relative residual {float(torch.sqrt(rr) / dnorm):.3e})"
        )
    return x


def _cg_pinverse(data, lam, y):
    op, param = data
    rhs = op.adjoint_unchecked(y)

    def normal(x):
        if op.has_normal:
            return op.normal_unchecked(x)
        return op.adjoint_unchecked(op.forward_unchecked(x))

    def regularised(x):
        return normal(x) + lam * x

    return conjugate_gradient(
        regularised,
        rhs,
        torch.zeros_like(rhs),
        param.max_iter,
        param.tol,
    )


def _cg_pinverse_del(data):
    op, _ = data
    op.free()


def linop_with_cg_pinverse(
    op: LinearOperator, param: Optional[LinopParameter] = None
) -> LinearOperator:
    """
    Same transforms as ``op``, plus a pseudo-inverse computed with conjugate gradient.

    The pseudo-inverse solves (A^H A + lambda I) z = A^H y, using the normal
    operator of ``op`` if it has one. The result shares the transforms of
    ``op`` by reference, so ``op`` can be freed independently.

    Parameters
    ----------
    op : LinearOperator
        Operator to extend.
    param : LinopParameter, optional
        ``max_iter`` and ``tol`` of the solver, see :func:`default_parameters`.
    """
    if param is None:
        param = default_parameters()
    param.is_filled()

    pinverse = OperatorP(
        op.codomain,
        op.domain,
        (op.clone(), param),
        _cg_pinverse,
        _cg_pinverse_del,
    )
    normal = op.normal_op
    return LinearOperator(
        op.forward_op.ref(),
        op.adjoint_op.ref(),
        None if normal is None else normal.ref(),
        pinverse,
    )
