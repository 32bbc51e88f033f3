"""Linear operators: forward, adjoint, normal and pseudo-inverse sharing one state."""

from typing import Any, Callable, Optional, Sequence, Union

import torch

from linops.exceptions.exceptions import ContractViolation, ShapeMismatch
from linops.num.iovec import IOVec, as_iovec
from linops.operators.Operator import Operator, OperatorP, operator_chain
from linops.operators.shared import SharedHandle, SharedPayload


def _shared_apply(handle, x):
    return handle.apply(x)


def _shared_apply_p(handle, lam, x):
    return handle.apply(lam, x)


def _shared_del(handle):
    handle.release()


class LinearOperator:
    """
    A linear operator A with its adjoint A^H and, optionally, the normal
    operator A^H A and a regularised pseudo-inverse.

    Most users want :meth:`LinearOperator.create`, which builds the four
    transforms from callbacks sharing one state. The constructor itself takes
    already built ``Operator`` handles and owns them from then on.

    Parameters
    ----------
    forward : Operator
        A, from domain to codomain.
    adjoint : Operator
        A^H, from codomain to domain.
    normal : Operator, optional
        A^H A, from domain to domain.
    pinverse : OperatorP, optional
        (A^H A + lambda I)^-1 A^H, from codomain to domain, parametrised by lambda.
    """

    def __init__(
        self,
        forward: Operator,
        adjoint: Operator,
        normal: Optional[Operator] = None,
        pinverse: Optional[OperatorP] = None,
    ):
        if forward is None or adjoint is None:
            raise ContractViolation("A linear operator needs forward and adjoint")
        if (
            adjoint.domain.dims != forward.codomain.dims
            or adjoint.codomain.dims != forward.domain.dims
        ):
            raise ContractViolation(
                f"Adjoint {adjoint.domain.dims} -> {adjoint.codomain.dims} does not "
                f"reverse forward {forward.domain.dims} -> {forward.codomain.dims}"
            )
        if normal is not None and (
            normal.domain.dims != forward.domain.dims
            or normal.codomain.dims != forward.domain.dims
        ):
            raise ContractViolation(
                f"Normal operator must map {forward.domain.dims} to itself, "
                f"got {normal.domain.dims} -> {normal.codomain.dims}"
            )
        if pinverse is not None and (
            pinverse.domain.dims != forward.codomain.dims
            or pinverse.codomain.dims != forward.domain.dims
        ):
            raise ContractViolation(
                f"Pseudo-inverse must map {forward.codomain.dims} to {forward.domain.dims}, "
                f"got {pinverse.domain.dims} -> {pinverse.codomain.dims}"
            )
        self._forward = forward
        self._adjoint = adjoint
        self._normal = normal
        self._pinverse = pinverse
        self._freed = False

    @classmethod
    def create(
        cls,
        domain: Union[IOVec, Sequence[int]],
        codomain: Union[IOVec, Sequence[int]],
        data: Any,
        forward: Callable,
        adjoint: Callable,
        normal: Optional[Callable] = None,
        pinverse: Optional[Callable] = None,
        deleter: Optional[Callable[[Any], None]] = None,
    ) -> "LinearOperator":
        """
        Create a linear operator from callbacks.

        Parameters
        ----------
        domain : IOVec or sequence of int
            Input dimensions. Plain shapes get contiguous strides.
        codomain : IOVec or sequence of int
            Output dimensions.
        data : Any
            State shared by all callbacks.
        forward : Callable[[Any, torch.Tensor], torch.Tensor]
            ``forward(data, x)`` computes A x.
        adjoint : Callable[[Any, torch.Tensor], torch.Tensor]
            ``adjoint(data, y)`` computes A^H y.
        normal : Callable[[Any, torch.Tensor], torch.Tensor], optional
            ``normal(data, x)`` computes A^H A x.
        pinverse : Callable[[Any, float, torch.Tensor], torch.Tensor], optional
            ``pinverse(data, lam, y)`` computes (A^H A + lam I)^-1 A^H y.
        deleter : Callable[[Any], None], optional
            Called once with ``data`` when the last transform is released.

        Returns
        -------
        LinearOperator
        """
        return cls(
            *_shared_operators(
                domain, codomain, data, forward, adjoint, normal, pinverse, deleter
            )
        )

    # ------------------------------------------------------------------ #
    # properties

    @property
    def domain(self) -> IOVec:
        return self._forward.domain

    @property
    def codomain(self) -> IOVec:
        return self._forward.codomain

    @property
    def domain_shape(self) -> torch.Size:
        return self.domain.shape

    @property
    def range_shape(self) -> torch.Size:
        return self.codomain.shape

    @property
    def has_normal(self) -> bool:
        return self._normal is not None

    @property
    def has_pinverse(self) -> bool:
        return self._pinverse is not None

    @property
    def forward_op(self) -> Operator:
        self._check_alive()
        return self._forward

    @property
    def adjoint_op(self) -> Operator:
        self._check_alive()
        return self._adjoint

    @property
    def normal_op(self) -> Optional[Operator]:
        self._check_alive()
        return self._normal

    @property
    def pinverse_op(self) -> Optional[OperatorP]:
        self._check_alive()
        return self._pinverse

    @property
    def data(self) -> Any:
        """State given to :meth:`create`, ``None`` for chained operators."""
        self._check_alive()
        handle = self._forward.data
        if isinstance(handle, SharedHandle):
            return handle.data
        return None

    @property
    def freed(self) -> bool:
        return self._freed

    def _check_alive(self):
        if self._freed:
            raise ContractViolation("Linear operator used after it was freed")

    # ------------------------------------------------------------------ #
    # application

    @staticmethod
    def _check_shape(iov: IOVec, t: Optional[torch.Tensor], what: str):
        if t is not None and not iov.matches(t.shape):
            raise ShapeMismatch(
                f"{what} has shape {tuple(t.shape)}, expected {iov.dims}"
            )

    def forward_unchecked(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        return self._forward.apply_unchecked(x, out=out)

    def adjoint_unchecked(
        self, y: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        assert self._adjoint is not None
        return self._adjoint.apply_unchecked(y, out=out)

    def normal_unchecked(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        if self._normal is None:
            raise ContractViolation("Linear operator has no normal operator")
        return self._normal.apply_unchecked(x, out=out)

    def pinverse_unchecked(
        self, lam: float, y: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        self._check_alive()
        if self._pinverse is None:
            raise ContractViolation("Linear operator has no pseudo-inverse")
        return self._pinverse.apply_unchecked(lam, y, out=out)

    def forward(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """
        Apply the forward operation, y = A x.

        Parameters
        ----------
        x : torch.Tensor
            Input, shaped like the domain.
        out : torch.Tensor, optional
            Output buffer, shaped like the codomain.

        Returns
        -------
        torch.Tensor
            A x (``out`` if it was given).

        Raises
        ------
        ShapeMismatch
            If ``x`` or ``out`` do not match the operator.
        """
        self._check_shape(self.domain, x, "Input")
        self._check_shape(self.codomain, out, "Output")
        return self.forward_unchecked(x, out=out)

    def adjoint(
        self, y: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Apply the adjoint operation, x = A^H y, checking shapes."""
        self._check_shape(self.codomain, y, "Input")
        self._check_shape(self.domain, out, "Output")
        return self.adjoint_unchecked(y, out=out)

    def normal(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Apply the normal operation, A^H A x, checking shapes."""
        self._check_shape(self.domain, x, "Input")
        self._check_shape(self.domain, out, "Output")
        return self.normal_unchecked(x, out=out)

    def pinverse(
        self, lam: float, y: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        """Apply the pseudo-inverse, (A^H A + lam I)^-1 A^H y, checking shapes."""
        self._check_shape(self.codomain, y, "Input")
        self._check_shape(self.domain, out, "Output")
        return self.pinverse_unchecked(lam, y, out=out)

    def __call__(
        self, x: torch.Tensor, out: Optional[torch.Tensor] = None
    ) -> torch.Tensor:
        return self.forward(x, out=out)

    def A(self, x: torch.Tensor) -> torch.Tensor:
        return self.forward(x)

    def AT(self, y: torch.Tensor) -> torch.Tensor:
        return self.adjoint(y)

    def T(self, y: torch.Tensor) -> torch.Tensor:
        return self.adjoint(y)

    H = T

    # closures for iterative algorithms, which only pass tensors around

    def forward_iter(self) -> Callable[[torch.Tensor], torch.Tensor]:
        return self.forward_unchecked

    def adjoint_iter(self) -> Callable[[torch.Tensor], torch.Tensor]:
        return self.adjoint_unchecked

    def normal_iter(self) -> Callable[[torch.Tensor], torch.Tensor]:
        if self._normal is None:
            raise ContractViolation("Linear operator has no normal operator")
        return self.normal_unchecked

    def pinverse_iter(self, lam: float) -> Callable[[torch.Tensor], torch.Tensor]:
        if self._pinverse is None:
            raise ContractViolation("Linear operator has no pseudo-inverse")
        return lambda y: self.pinverse_unchecked(lam, y)

    # ------------------------------------------------------------------ #
    # lifetime and composition

    def clone(self) -> "LinearOperator":
        """A new linear operator holding its own references on the same transforms."""
        self._check_alive()
        return LinearOperator(
            self._forward.ref(),
            self._adjoint.ref(),
            None if self._normal is None else self._normal.ref(),
            None if self._pinverse is None else self._pinverse.ref(),
        )

    def free(self):
        """
        Release the transforms held by this operator.

        The shared state is only deleted once every clone (and every chain
        built on top of this operator) has been freed too.
        """
        self._check_alive()
        self._freed = True
        for op in (self._forward, self._adjoint, self._normal, self._pinverse):
            if op is not None:
                op.free()

    def chain(self, other: "LinearOperator") -> "LinearOperator":
        """Apply ``self`` and then ``other``."""
        return linop_chain(self, other)

    def __matmul__(self, other: "LinearOperator") -> "LinearOperator":
        # (B @ A) x = B (A x)
        return linop_chain(other, self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        if not self._freed:
            self.free()

    def __repr__(self):
        extras = [
            name
            for name, op in (("normal", self._normal), ("pinverse", self._pinverse))
            if op is not None
        ]
        return (
            f"{type(self).__name__}({self.domain.dims} -> {self.codomain.dims}"
            + "".join(f", {e}" for e in extras)
            + ")"
        )


def _shared_operators(
    domain, codomain, data, forward, adjoint, normal, pinverse, deleter
):
    if forward is None or adjoint is None:
        raise ContractViolation("A linear operator needs forward and adjoint")

    idom = as_iovec(domain)
    icod = as_iovec(codomain)

    handles = SharedPayload.create(4, data, deleter)
    for handle, fun in zip(handles, (forward, adjoint, normal, pinverse)):
        handle.bind(fun)

    fwd = Operator(idom, icod, handles[0], _shared_apply, _shared_del)
    adj = Operator(icod, idom, handles[1], _shared_apply, _shared_del)

    if normal is not None:
        nrm = Operator(idom, idom, handles[2], _shared_apply, _shared_del)
    else:
        handles[2].release()
        nrm = None

    if pinverse is not None:
        pinv = OperatorP(icod, idom, handles[3], _shared_apply_p, _shared_del)
    else:
        handles[3].release()
        pinv = None

    return fwd, adj, nrm, pinv


def linop_chain(a: LinearOperator, b: LinearOperator) -> LinearOperator:
    """
    Chain two linear operators, C = B A.

    C^H = A^H B^H, and C^H C = A^H (B^H B) A uses the normal operator of B
    when it has one. There is no pseudo-inverse for the chain.

    Parameters
    ----------
    a : LinearOperator
        Applied first.
    b : LinearOperator
        Applied second; its domain must match the codomain of ``a``.

    Returns
    -------
    LinearOperator
        Owns only the composed transforms; ``a`` and ``b`` stay valid.
    """
    a._check_alive()
    b._check_alive()

    built = []
    try:
        forward = operator_chain(a._forward, b._forward)
        built.append(forward)
        adjoint = operator_chain(b._adjoint, a._adjoint)
        built.append(adjoint)

        if b._normal is None:
            normal = operator_chain(forward, adjoint)
        else:
            top = operator_chain(b._normal, a._adjoint)
            built.append(top)
            normal = operator_chain(a._forward, top)
            built.remove(top)
            top.free()
        built.append(normal)

        return LinearOperator(forward, adjoint, normal, None)
    except ContractViolation:
        # drop the references taken by the partial chain
        for op in reversed(built):
            op.free()
        raise
