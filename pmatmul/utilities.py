# utilities.py - utility functions

import numpy as np
np.set_printoptions(precision=5, suppress=True, floatmode='fixed')

from mpi4py import MPI
import os
import sys
import psutil         # for memory usage

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .matrix import dmat  # for type checkers only


def dtype_to_mpi(dtype):
    dtype = np.dtype(dtype)
    if dtype == np.bool_:
        return MPI.C_BOOL
    elif dtype == np.uint8:
        return MPI.UNSIGNED_CHAR
    elif dtype == np.int32:
        return MPI.INT
    elif dtype == np.int64:
        return MPI.LONG
    elif dtype == np.float32:
        return MPI.FLOAT
    elif dtype == np.float64:
        return MPI.DOUBLE
    else:
        raise ValueError(f"Unsupported dtype: {dtype}")


def _rank_of(comm):
    # Works for MPI.Comm and for pmatmul.Communicator (or anything with Get_rank)
    comm = comm if comm is not None else MPI.COMM_WORLD
    return comm.Get_rank()


def print_on_root(*args, comm=None, root=0, **kwargs):
    if _rank_of(comm) == root:
        print(*args, **kwargs)


def print_matrix(title: str, M: 'dmat', comm=None, root=0):
    # Only the root holds a defined copy of the output, so only the root prints
    if _rank_of(comm) != root:
        return

    print(f"{title}:")
    for i in range(M.nrows):
        for j in range(M.ncols):
            print(f"{M.get(i, j)}", end=" ")
        print()
    print()

def print_ordered_by_rank(x, *args, **kwargs):
    comm = kwargs.pop('comm', None) or MPI.COMM_WORLD
    for p in range(comm.Get_size()):
        comm.Barrier()
        if p == comm.Get_rank():
            print(x, *args, **kwargs)


def install_mpi_excepthook():
    # Kill every rank when one of them raises. Otherwise the others hang
    # in the next collective waiting for a rank that is already gone.
    sys_excepthook = sys.excepthook

    def mpi_excepthook(type, value, traceback):
        sys_excepthook(type, value, traceback)
        if MPI.COMM_WORLD.size > 1:
            MPI.COMM_WORLD.Abort(1)

    sys.excepthook = mpi_excepthook
    return sys_excepthook


def mpi_get_variable_statistics(x, comm=None):
    comm = comm if comm is not None else MPI.COMM_WORLD
    x = np.atleast_1d(np.asarray(x, dtype=np.float64))

    global_min = comm.allreduce(np.min(x), op=MPI.MIN)
    global_max = comm.allreduce(np.max(x), op=MPI.MAX)
    global_sum = comm.allreduce(np.sum(x), op=MPI.SUM)
    global_count = comm.allreduce(x.size, op=MPI.SUM)

    global_mean = global_sum / global_count

    # Get stddev
    all_values = np.concatenate(comm.allgather(x))
    global_stddev = np.std(all_values)

    return global_min, global_max, global_mean, global_stddev


def mpi_print_variable_statistics(var_name, x, comm=None):
    comm = comm if comm is not None else MPI.COMM_WORLD
    n_procs = comm.Get_size()
    v_min, v_max, v_mean, v_stddev = mpi_get_variable_statistics(x, comm)
    if comm.Get_rank() == 0:
        print(f"{var_name}")
        print(f"  Procs: {n_procs}, Min: {v_min:.6f}, Max: {v_max:.6f}, Mean: {v_mean:.6f}, Stddev: {v_stddev:.6f}\n")

def get_memory_usage():
    
    # Prefer USS (unique set size) or PSS (proportional set size) if available; if not, fall back to rss-shared or rss.
    proc = psutil.Process(os.getpid())
    try:
        import gc
        gc.collect()   
        
        mem_full = proc.memory_full_info()
        # Choose uss (unique) first, else pss (proportional)
        mem_bytes = getattr(mem_full, "uss", None) or getattr(mem_full, "pss", None) or proc.memory_info().rss
        mem_label = "USS" if getattr(mem_full, "uss", None) else ("PSS" if getattr(mem_full, "pss", None) else "RSS")
    except psutil.Error:
        mi = proc.memory_info()
        # If shared attribute exists, subtract it to approximate private memory
        shared = getattr(mi, "shared", None)
        if shared is not None:
            mem_bytes = mi.rss - shared
            mem_label = "RSS-shared"
        else:
            mem_bytes = mi.rss
            mem_label = "RSS"
    return mem_bytes, mem_label

def time_it(fn, *args, repeat=5, warmups=0, timer_fn=MPI.Wtime):
    # optional warmups for steady-state CPU, caches, etc.
    for _ in range(warmups):
        fn(*args)
    times = []
    for _ in range(repeat):
        t0 = timer_fn()
        fn(*args)
        times.append(timer_fn() - t0)
    return min(times), sum(times)/len(times)
