import pytest
import torch

from linops.exceptions.exceptions import ContractViolation
from linops.num.iovec import IOVec
from linops.operators import Gradient, LinearOperator
from linops.utils.math import dot_test, grad_magnitude, normal_test


@pytest.mark.parametrize(
    "dims, flags, K",
    [
        ((4, 4), 0b11, 2),
        ((3, 5, 2), 0b101, 2),
        ((3, 5, 2), 0b010, 1),
        ((2, 3, 4, 5), 0b1111, 4),
        ((7,), 0b1, 1),
        ((3, 3), 0, 0),
    ],
)
def test_codomain_appends_number_of_selected_dims(dims, flags, K):
    op = Gradient(dims, flags)
    assert op.K == K
    assert op.domain.dims == dims
    assert op.codomain.dims == dims + (K,)
    assert op.codomain.strs == torch.empty(dims + (K,)).stride()
    assert op.has_normal
    assert not op.has_pinverse
    op.free()


def test_selected_dims_are_ascending():
    op = Gradient((2, 3, 4, 5), 0b1010)
    assert op.grad_dims == (1, 3)
    assert op.flags == 0b1010
    assert op.dims == (2, 3, 4, 5)
    op.free()


def test_codomain_check():
    Gradient((4, 4), 0b11, codomain=(4, 4, 2)).free()
    Gradient((4, 4), 0b11, codomain=IOVec((4, 4, 2))).free()
    with pytest.raises(ContractViolation):
        Gradient((4, 4), 0b11, codomain=(4, 4, 3))
    with pytest.raises(ContractViolation):
        Gradient((4, 4), 0b01, codomain=(4, 4, 2))
    with pytest.raises(ContractViolation):
        Gradient((4, 4), 0b11, codomain=(4, 5, 2))


def test_flags_outside_rank_are_rejected():
    with pytest.raises(ContractViolation):
        Gradient((4, 4), 0b100)
    with pytest.raises(ContractViolation):
        Gradient((4, 4), -1)


def test_row_index_image():
    x = torch.arange(4, dtype=torch.float32).to(torch.complex64)
    x = x.reshape(4, 1).expand(4, 4).contiguous()
    op = Gradient((4, 4), 0b11)
    y = op.forward(x)
    assert y.shape == (4, 4, 2)

    expected = torch.ones(4, 4, dtype=torch.complex64)
    expected[-1, :] = 0
    torch.testing.assert_close(y[..., 0], expected)
    assert torch.count_nonzero(y[..., 1]) == 0
    op.free()


def test_adjoint_1d():
    op = Gradient((3,), 0b1)
    y = torch.tensor([[1.0], [2.0], [3.0]], dtype=torch.complex64)
    torch.testing.assert_close(
        op.adjoint(y), torch.tensor([-1.0, -1.0, 2.0], dtype=torch.complex64)
    )
    op.free()


@pytest.mark.parametrize(
    "dims, flags", [((6, 5), 0b11), ((4, 3, 5), 0b101), ((4, 3, 5), 0b111), ((8,), 0b1)]
)
def test_adjoint_identity(dims, flags, generator):
    op = Gradient(dims, flags)
    assert dot_test(op, dtype=torch.complex128, generator=generator)
    op.free()


@pytest.mark.parametrize("dims, flags", [((6, 5), 0b11), ((4, 3, 5), 0b110)])
def test_normal_is_adjoint_of_forward(dims, flags, generator):
    op = Gradient(dims, flags)
    x = torch.randn(dims, dtype=torch.complex128, generator=generator)
    torch.testing.assert_close(op.normal(x), op.adjoint(op.forward(x)))
    assert normal_test(op, dtype=torch.complex128, generator=generator)
    op.free()


def test_real_input():
    op = Gradient((3, 3), 0b10)
    x = torch.tensor([[0.0, 1.0, 3.0]] * 3, dtype=torch.float64)
    y = op.forward(x)
    assert y.dtype == torch.float64
    torch.testing.assert_close(
        y[..., 0], torch.tensor([[1.0, 2.0, 0.0]] * 3, dtype=torch.float64)
    )
    op.free()


def test_no_selected_dims():
    op = Gradient((3, 3), 0)
    x = torch.ones(3, 3, dtype=torch.complex64)
    assert op.forward(x).shape == (3, 3, 0)
    y = torch.zeros(3, 3, 0, dtype=torch.complex64)
    assert torch.count_nonzero(op.adjoint(y)) == 0
    op.free()


def test_clone_is_a_linear_operator():
    op = Gradient((4, 4), 0b11)
    other = op.clone()
    op.free()
    assert type(other) is LinearOperator
    assert other.codomain.dims == (4, 4, 2)
    assert other.data.grad_dims == (0, 1)
    x = torch.ones(4, 4, dtype=torch.complex64)
    assert torch.count_nonzero(other(x)) == 0
    other.free()


def test_parameters():
    param = Gradient.default_parameters()
    with pytest.raises(ValueError):
        Gradient.from_parameters(param)
    param.dims = (4, 4)
    param.flags = 0
    op = Gradient.from_parameters(param)
    assert op.codomain.dims == (4, 4, 0)
    op.free()


def test_grad_magnitude():
    i = torch.arange(4, dtype=torch.float32).reshape(4, 1)
    j = torch.arange(4, dtype=torch.float32).reshape(1, 4)
    x = (i + 2 * j).to(torch.complex64)
    m = grad_magnitude(x, 0b11)

    expected = torch.full((4, 4), 5.0 ** 0.5)
    expected[-1, :] = 2.0
    expected[:, -1] = 1.0
    expected[-1, -1] = 0.0
    assert m.shape == (4, 4)
    torch.testing.assert_close(m, expected)
