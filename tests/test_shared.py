import itertools

import pytest

from linops.exceptions.exceptions import ContractViolation
from linops.operators.shared import SharedPayload


@pytest.mark.parametrize("order", list(itertools.permutations(range(4))))
def test_deleter_runs_once_after_last_release(order, counter):
    handles = SharedPayload.create(4, "state", counter)
    for i in order:
        assert counter.count == 0
        handles[i].release()
    assert counter.count == 1
    assert counter.data == ["state"]


def test_payload_shrinks_without_deleting(counter):
    handles = SharedPayload.create(4, {"a": 1}, counter)
    payload = handles[0].payload
    handles[2].release()
    handles[3].release()
    assert len(payload) == 2
    assert payload.alive
    assert counter.count == 0
    assert handles[0].data == {"a": 1}

    handles[0].release()
    handles[1].release()
    assert not payload.alive
    assert counter.count == 1


def test_double_release_is_rejected(counter):
    handles = SharedPayload.create(2, None, counter)
    handles[0].release()
    with pytest.raises(ContractViolation):
        handles[0].release()
    handles[1].release()
    with pytest.raises(ContractViolation):
        handles[1].release()
    assert counter.count == 1


def test_apply_uses_bound_function():
    fwd, adj = SharedPayload.create(2, 10, None)
    fwd.bind(lambda data, x: data + x)
    adj.bind(lambda data, x: data - x)
    assert fwd.apply(1) == 11
    assert adj.apply(1) == 9


def test_apply_after_release_is_rejected():
    (h,) = SharedPayload.create(1, 10, None)
    h.bind(lambda data, x: data * x)
    h.release()
    assert h.released
    with pytest.raises(ContractViolation):
        h.apply(2)


def test_unbound_handle_cannot_apply():
    (h,) = SharedPayload.create(1, 10, None)
    with pytest.raises(ContractViolation):
        h.apply(2)


def test_needs_at_least_one_handle():
    with pytest.raises(ContractViolation):
        SharedPayload.create(0, None, None)
