import pytest
import torch

from linops.num.flpmath import (
    add,
    bitcount,
    fdiff,
    fdiff_backwards,
    ffs,
    flags_to_dims,
    rss,
    zdot,
)
from linops.num.iovec import IOVec, as_iovec, calc_strides


def test_fdiff_1d():
    x = torch.tensor([0.0, 1.0, 3.0, 6.0])
    torch.testing.assert_close(fdiff(x, 0), torch.tensor([1.0, 2.0, 3.0, 0.0]))


def test_fdiff_backwards_1d():
    y = torch.tensor([1.0, 2.0, 3.0, 4.0])
    # the last entry of y is not seen by the adjoint
    torch.testing.assert_close(
        fdiff_backwards(y, 0), torch.tensor([-1.0, -1.0, -1.0, 3.0])
    )


def test_fdiff_single_sample_is_zero():
    x = torch.ones(1, 5, dtype=torch.complex64)
    assert torch.count_nonzero(fdiff(x, 0)) == 0
    assert torch.count_nonzero(fdiff_backwards(x, 0)) == 0


@pytest.mark.parametrize("dim", [0, 1, 2])
def test_fdiff_backwards_is_adjoint(dim, generator):
    x = torch.randn(3, 4, 5, dtype=torch.complex128, generator=generator)
    y = torch.randn(3, 4, 5, dtype=torch.complex128, generator=generator)
    lhs = zdot(fdiff(x, dim), y)
    rhs = zdot(x, fdiff_backwards(y, dim))
    torch.testing.assert_close(lhs, rhs)


def test_add_in_place():
    a = torch.ones(3)
    b = torch.full((3,), 2.0)
    add(a, a, b)
    torch.testing.assert_close(a, torch.full((3,), 3.0))


def test_rss():
    x = torch.tensor([[3.0, 4.0], [0.0, 0.0]], dtype=torch.complex64)
    torch.testing.assert_close(rss(x, (-1,)), torch.tensor([5.0, 0.0]))


def test_bit_helpers():
    assert bitcount(0) == 0
    assert bitcount(0b1011) == 3
    assert ffs(0) == -1
    assert ffs(0b1000) == 3
    assert ffs(0b0110) == 1
    assert flags_to_dims(0b1011) == (0, 1, 3)
    assert flags_to_dims(0) == ()


def test_calc_strides_match_torch():
    for dims in [(2, 3, 4), (5,), (), (3, 0, 2)]:
        assert calc_strides(dims) == torch.empty(dims).stride()


def test_iovec():
    iov = IOVec((2, 3))
    assert iov.strs == (3, 1)
    assert iov.N == 2
    assert iov.size == 6
    assert iov.shape == torch.Size([2, 3])
    assert iov.matches(torch.Size([2, 3]))
    assert not iov.matches((3, 2))
    assert as_iovec([2, 3]) == iov
    assert as_iovec(iov) is iov


def test_iovec_rejects_bad_input():
    with pytest.raises(ValueError):
        IOVec((2, -1))
    with pytest.raises(ValueError):
        IOVec((2, 3), (1,))
