"""Reference counted operators that can be applied and composed."""

from typing import Any, Callable, Optional, Sequence, Union

import torch

from linops.exceptions.exceptions import ContractViolation, ShapeMismatch
from linops.num.iovec import IOVec, as_iovec


def _write_out(result: torch.Tensor, out: Optional[torch.Tensor]) -> torch.Tensor:
    if out is None:
        return result
    if out is not result:
        if not torch.can_cast(result.dtype, out.dtype):
            raise ShapeMismatch(
                f"Output of type {out.dtype} cannot hold a result of type {result.dtype}"
            )
        out.copy_(result)
    return out


class Operator:
    """
    An opaque operator from ``domain`` to ``codomain``.

    The operator owns ``data`` through a reference count: ``ref()`` adds a
    holder, ``free()`` drops one and the deleter runs when none are left.

    Parameters
    ----------
    domain : IOVec or sequence of int
        Dimensions (and strides) of the input.
    codomain : IOVec or sequence of int
        Dimensions (and strides) of the output.
    data : Any
        State passed to ``apply_fun`` and ``del_fun``.
    apply_fun : Callable[[Any, torch.Tensor], torch.Tensor]
        Computes the output for an input tensor.
    del_fun : Callable[[Any], None], optional
        Releases ``data``.
    """

    def __init__(
        self,
        domain: Union[IOVec, Sequence[int]],
        codomain: Union[IOVec, Sequence[int]],
        data: Any,
        apply_fun: Callable,
        del_fun: Optional[Callable[[Any], None]] = None,
    ):
        self._domain = as_iovec(domain)
        self._codomain = as_iovec(codomain)
        self._data = data
        self._apply_fun = apply_fun
        self._del_fun = del_fun
        self._refcount = 1

    @property
    def domain(self) -> IOVec:
        return self._domain

    @property
    def codomain(self) -> IOVec:
        return self._codomain

    @property
    def data(self) -> Any:
        self._check_alive()
        return self._data

    @property
    def refcount(self) -> int:
        return self._refcount

    @property
    def alive(self) -> bool:
        return self._refcount > 0

    def _check_alive(self):
        if self._refcount <= 0:
            raise ContractViolation("Operator used after it was freed")

    def ref(self) -> "Operator":
        self._check_alive()
        self._refcount += 1
        return self

    def free(self):
        self._check_alive()
        self._refcount -= 1
        if self._refcount == 0:
            if self._del_fun is not None:
                self._del_fun(self._data)
            self._data = None
            self._apply_fun = None

    def apply_unchecked(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        return _write_out(self._apply_fun(self._data, x), out)

    def __call__(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        return self.apply_unchecked(x, out=out)

    def __repr__(self):
        return (
            f"{type(self).__name__}({self._domain.dims} -> {self._codomain.dims}, "
            f"refcount={self._refcount})"
        )


class OperatorP(Operator):
    """An ``Operator`` whose apply function takes an extra scalar parameter."""

    def apply_unchecked(
        self, lam: float, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        return _write_out(self._apply_fun(self._data, lam, x), out)

    def __call__(
        self, lam: float, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        return self.apply_unchecked(lam, x, out=out)


def _chain_apply(data, x):
    a, b = data
    return b.apply_unchecked(a.apply_unchecked(x))


def _chain_del(data):
    a, b = data
    a.free()
    b.free()


def operator_chain(a: Operator, b: Operator) -> Operator:
    """
    Compose two operators: the result applies ``a`` and then ``b``.

    The new operator holds its own reference on ``a`` and ``b``, so both can be
    freed by the caller independently of the result.
    """
    if a.codomain.dims != b.domain.dims:
        raise ContractViolation(
            f"Cannot chain operators: codomain {a.codomain.dims} "
            f"does not match domain {b.domain.dims}"
        )
    return Operator(a.domain, b.codomain, (a.ref(), b.ref()), _chain_apply, _chain_del)
