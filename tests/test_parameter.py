import numpy as np
import pytest

from linops.utils.parameter import LinopParameter


def test_nested_dicts_become_parameters():
    param = LinopParameter(solver={"max_iter": 10, "tol": 1e-3}, flags=3)
    assert isinstance(param.solver, LinopParameter)
    assert param.solver.max_iter == 10
    assert param.flags == 3


def test_save_and_load(tmp_path):
    param = LinopParameter(solver={"max_iter": 10, "tol": 1e-3}, dims=(4, 4))
    param.scale = np.float32(0.5)
    fname = param.save(tmp_path / "params")
    assert fname.suffix == ".json"

    loaded = LinopParameter().load(fname)
    assert loaded.solver.max_iter == 10
    assert loaded.dims == [4, 4]
    assert loaded.scale == 0.5
    # saving does not touch the original
    assert isinstance(param.solver, LinopParameter)


def test_is_filled():
    param = LinopParameter(flags=0, dims=())
    param.is_filled()
    param.tol = None
    with pytest.raises(ValueError):
        param.is_filled()


def test_unpack():
    param = LinopParameter(solver={"max_iter": 10}, flags=1)
    nested = param.unpack()
    assert list(nested) == ["solver"]
    assert not hasattr(param, "solver")
    assert param.flags == 1
