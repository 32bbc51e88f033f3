"""Shape and strides descriptor for operator domains and codomains."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import torch


def calc_strides(dims: Sequence[int]) -> Tuple[int, ...]:
    """
    Contiguous (row-major) strides of a shape, in elements.

    Matches ``torch.empty(dims).stride()``: the last dimension has stride 1.
    """
    strs = []
    acc = 1
    for d in reversed(tuple(dims)):
        strs.append(acc)
        acc *= max(int(d), 1)
    return tuple(reversed(strs))


@dataclass(frozen=True)
class IOVec:
    """
    Dimensions and strides of the input or output of an operator.

    Parameters
    ----------
    dims : tuple of int
        Extent of each dimension.
    strs : tuple of int, optional
        Element offset of each dimension. Contiguous strides if not given.
    """

    dims: Tuple[int, ...]
    strs: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        dims = tuple(int(d) for d in self.dims)
        if any(d < 0 for d in dims):
            raise ValueError(f"Dimensions must be non-negative, got {dims}")
        strs = calc_strides(dims) if self.strs is None else tuple(int(s) for s in self.strs)
        if len(strs) != len(dims):
            raise ValueError(
                f"Got {len(strs)} strides for {len(dims)} dimensions"
            )
        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "strs", strs)

    @property
    def N(self) -> int:
        return len(self.dims)

    @property
    def size(self) -> int:
        size = 1
        for d in self.dims:
            size *= d
        return size

    @property
    def shape(self) -> torch.Size:
        return torch.Size(self.dims)

    def matches(self, shape: Sequence[int]) -> bool:
        return tuple(shape) == self.dims

    def __len__(self):
        return len(self.dims)


def as_iovec(x: Union[IOVec, Sequence[int]]) -> IOVec:
    """Accept either an IOVec or a plain shape (contiguous strides)."""
    if isinstance(x, IOVec):
        return x
    return IOVec(tuple(x))
