"""
Shared ownership of the state behind the transforms of a linear operator.

A linear operator has up to four transforms (forward, adjoint, normal,
pseudo-inverse) built from one piece of state. Each transform gets its own
``SharedHandle`` and can be released on its own; the deleter of the state runs
once, when the last handle goes.
"""

from typing import Any, Callable, List, Optional

from linops.exceptions.exceptions import ContractViolation


class SharedPayload:
    def __init__(self, data: Any, deleter: Optional[Callable[[Any], None]] = None):
        self.data = data
        self.deleter = deleter
        self._members = set()

    @classmethod
    def create(
        cls, n: int, data: Any, deleter: Optional[Callable[[Any], None]] = None
    ) -> List["SharedHandle"]:
        """
        Create ``n`` handles sharing ``data``.

        Parameters
        ----------
        n : int
            Number of sibling handles.
        data : Any
            State passed to the transform of every handle.
        deleter : Callable, optional
            Called with ``data`` when the last handle is released.

        Returns
        -------
        list of SharedHandle
        """
        if n < 1:
            raise ContractViolation("A shared payload needs at least one handle")
        payload = cls(data, deleter)
        handles = [SharedHandle(payload) for _ in range(n)]
        payload._members.update(handles)
        return handles

    @property
    def alive(self) -> bool:
        return len(self._members) > 0

    def __len__(self):
        return len(self._members)

    def _release(self, handle: "SharedHandle"):
        if handle not in self._members:
            raise ContractViolation("Handle released twice")
        if len(self._members) == 1:
            self._members.clear()
            if self.deleter is not None:
                self.deleter(self.data)
            self.data = None
        else:
            self._members.discard(handle)


class SharedHandle:
    """One role (forward, adjoint, ...) bound to a ``SharedPayload``."""

    __slots__ = ("_payload", "_fun")

    def __init__(self, payload: SharedPayload):
        self._payload = payload
        self._fun = None

    def bind(self, fun: Callable) -> "SharedHandle":
        self._fun = fun
        return self

    @property
    def released(self) -> bool:
        return self._payload is None

    @property
    def payload(self) -> SharedPayload:
        if self._payload is None:
            raise ContractViolation("Handle used after release")
        return self._payload

    @property
    def data(self) -> Any:
        return self.payload.data

    def apply(self, *args):
        payload = self.payload
        if self._fun is None:
            raise ContractViolation("No transform bound to this handle")
        return self._fun(payload.data, *args)

    def release(self):
        if self._payload is None:
            raise ContractViolation("Handle released twice")
        payload = self._payload
        payload._release(self)
        self._payload = None
        self._fun = None
