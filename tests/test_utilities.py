# test_utilities.py

import sys

import numpy as np
import pytest
from mpi4py import MPI

from pmatmul import dmat
from pmatmul.utilities import (
    dtype_to_mpi, print_on_root, print_matrix, print_ordered_by_rank,
    install_mpi_excepthook, mpi_get_variable_statistics, get_memory_usage, time_it,
)


@pytest.mark.parametrize("dtype, mpi_type", [
    (np.float64, MPI.DOUBLE),
    (np.float32, MPI.FLOAT),
    (np.int32, MPI.INT),
    (np.int64, MPI.LONG),
    (np.uint8, MPI.UNSIGNED_CHAR),
    (np.bool_, MPI.C_BOOL),
])
def test_dtype_to_mpi(dtype, mpi_type):
    assert dtype_to_mpi(dtype) == mpi_type


def test_dtype_to_mpi_unsupported():
    with pytest.raises(ValueError):
        dtype_to_mpi(np.complex128)


def test_print_on_root(capsys):
    print_on_root("hello", comm=MPI.COMM_SELF)
    print_on_root("not me", comm=MPI.COMM_SELF, root=1)
    assert capsys.readouterr().out == "hello\n"


def test_print_matrix(capsys):
    M = dmat.from_numpy(np.array([[1.0, 2.0], [3.0, 4.0]]))
    print_matrix("M", M, comm=MPI.COMM_SELF)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "M:"
    assert lines[1].split() == ["1.0", "2.0"]
    assert lines[2].split() == ["3.0", "4.0"]


def test_print_ordered_by_rank(capsys):
    print_ordered_by_rank("rank says", 0, comm=MPI.COMM_SELF)
    assert capsys.readouterr().out == "rank says 0\n"


def test_install_mpi_excepthook(monkeypatch):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    original = sys.excepthook

    previous = install_mpi_excepthook()

    assert previous is original
    assert sys.excepthook is not original
    assert sys.excepthook.__name__ == "mpi_excepthook"


def test_variable_statistics_single_rank():
    v_min, v_max, v_mean, v_stddev = mpi_get_variable_statistics([1.0, 2.0, 3.0], comm=MPI.COMM_SELF)
    assert (v_min, v_max) == (1.0, 3.0)
    assert v_mean == pytest.approx(2.0)
    assert v_stddev == pytest.approx(np.std([1.0, 2.0, 3.0]))


def test_memory_usage():
    mem_bytes, mem_label = get_memory_usage()
    assert mem_bytes > 0
    assert mem_label in ("USS", "PSS", "RSS", "RSS-shared")


def test_time_it():
    calls = []
    min_t, mean_t = time_it(lambda: calls.append(1), repeat=4, warmups=2)

    assert len(calls) == 6
    assert 0.0 <= min_t <= mean_t
