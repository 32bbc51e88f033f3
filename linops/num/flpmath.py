"""
Array primitives used by the operators.

Everything here works on torch tensors of any dtype (complex64 by default) and
allocates on the device of the reference tensor.
"""

from typing import Sequence, Tuple

import torch

CFL_DTYPE = torch.complex64


def alloc_sameplace(dims: Sequence[int], like: torch.Tensor) -> torch.Tensor:
    """Uninitialised tensor of shape ``dims`` with the dtype and device of ``like``."""
    return torch.empty(tuple(dims), dtype=like.dtype, device=like.device)


def clear(x: torch.Tensor) -> torch.Tensor:
    return x.zero_()


def add(out: torch.Tensor, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Elementwise ``out = a + b``. ``out`` may alias ``a`` or ``b``."""
    return torch.add(a, b, out=out)


def fdiff(x: torch.Tensor, dim: int) -> torch.Tensor:
    """
    Forward finite difference along ``dim``.

    ``out[i] = x[i + 1] - x[i]`` for ``i < n - 1`` and ``out[n - 1] = 0``.
    """
    out = torch.zeros_like(x)
    n = x.shape[dim]
    if n > 1:
        out.narrow(dim, 0, n - 1).copy_(x.narrow(dim, 1, n - 1) - x.narrow(dim, 0, n - 1))
    return out


def fdiff_backwards(y: torch.Tensor, dim: int) -> torch.Tensor:
    """
    Adjoint of :func:`fdiff` along ``dim``.

    ``out[i] = y[i - 1] - y[i]`` where ``y[-1]`` and ``y[n - 1]`` count as zero.
    """
    out = torch.zeros_like(y)
    n = y.shape[dim]
    if n > 1:
        head = y.narrow(dim, 0, n - 1)
        out.narrow(dim, 0, n - 1).sub_(head)
        out.narrow(dim, 1, n - 1).add_(head)
    return out


def rss(x: torch.Tensor, dims: Sequence[int]) -> torch.Tensor:
    """Root of the sum of squared magnitudes over ``dims``. Returns a real tensor."""
    return torch.sqrt(torch.sum(torch.abs(x) ** 2, dim=tuple(dims)))


def zdot(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    """Complex inner product ``<a, b> = sum(conj(a) * b)``."""
    return torch.vdot(a.reshape(-1), b.reshape(-1))


def bitcount(flags: int) -> int:
    return bin(flags).count("1")


def ffs(flags: int) -> int:
    """Index of the lowest set bit, -1 if ``flags`` is 0."""
    return (flags & -flags).bit_length() - 1


def flags_to_dims(flags: int) -> Tuple[int, ...]:
    """Expand a dimension bitmask to the ascending tuple of selected dimensions."""
    dims = []
    while flags:
        lsb = ffs(flags)
        dims.append(lsb)
        flags &= ~(1 << lsb)
    return tuple(dims)
