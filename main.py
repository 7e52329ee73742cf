"""
main.py

mpiexec -n 4 python main.py --n 512 --k 256 --m 384 --check
mpiexec -n 4 python main.py --a data/A.dat --b data/B.dat --out data/C.dat
"""

################################################################################
# Imports and Setup
################################################################################

import argparse
import sys
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(line_buffering=True) # make print output unbuffered (flush by default)

import numpy as np
np.set_printoptions(precision=5, suppress=True, floatmode='fixed')

from pathlib import Path

from mpi4py import MPI
from pmatmul import dmat, Communicator, matmul
from pmatmul.matmul import ROOT
from pmatmul.utilities import get_memory_usage, install_mpi_excepthook, print_on_root


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Distributed dense matrix multiply (row blocks, broadcast inputs, Isend/Irecv results)"
    )
    parser.add_argument("--n", type=int, default=256, help="Rows of A and C")
    parser.add_argument("--k", type=int, default=256, help="Columns of A, rows of B")
    parser.add_argument("--m", type=int, default=256, help="Columns of B and C")
    parser.add_argument("--a", type=Path, default=None, help="Read A from this .dat file instead of generating it")
    parser.add_argument("--b", type=Path, default=None, help="Read B from this .dat file instead of generating it")
    parser.add_argument("--out", type=Path, default=None, help="Write C to this .dat file (root only)")
    parser.add_argument("--seed", type=int, default=0, help="Seed for generated inputs")
    parser.add_argument("--check", action="store_true", help="Compare the result against numpy on the root")
    parser.add_argument("--verbose", action="store_true", help="Print per-phase timings")
    return parser.parse_args(argv)

################################################################################
# Data Loading and Saving
################################################################################

def input_meta(A: dmat, B: dmat):
    # Everything the other ranks need to build receive buffers that match the root's
    return (A.shape, A.dtype.name, B.shape, B.dtype.name)


def empty_inputs(meta):
    (n, k), A_dtype, (k2, m), B_dtype = meta
    return dmat.zeros(n, k, dtype=A_dtype), dmat.zeros(k2, m, dtype=B_dtype)


def load_inputs(args, rank):
    # Only the root holds the inputs. Every other rank gets zeros of the same shape and dtype
    if rank == ROOT:
        if args.a is not None:
            A, nbytes = dmat.from_file(args.a)
            print(f"Loaded {args.a} ({nbytes / 1024**2:.2f} MB)")
        else:
            rng = np.random.default_rng(args.seed)
            A = dmat.from_numpy(rng.random((args.n, args.k)))

        if args.b is not None:
            B, nbytes = dmat.from_file(args.b)
            print(f"Loaded {args.b} ({nbytes / 1024**2:.2f} MB)")
        else:
            rng = np.random.default_rng(args.seed + 1)
            B = dmat.from_numpy(rng.random((args.k, args.m)))

        meta = input_meta(A, B)
    else:
        meta = None

    meta = MPI.COMM_WORLD.bcast(meta, root=ROOT)
    (n, k), _, (k2, m), _ = meta

    if k != k2:
        # Not the multiply's job to check shapes, so check them here
        print_on_root(f"Shape mismatch: A is {n}x{k} but B is {k2}x{m}")
        return None

    if rank != ROOT:
        A, B = empty_inputs(meta)

    return A, B


def main(argv=None):
    args = parse_args(argv)
    install_mpi_excepthook()

    comm = Communicator(MPI.COMM_WORLD)
    rank = comm.rank
    size = comm.size

    inputs = load_inputs(args, rank)
    if inputs is None:
        return 1
    A, B = inputs

    # Output is zeroed on every rank before the call
    C = dmat.zeros(A.nrows, B.ncols)

    if rank == ROOT:
        print("=" * 40)
        print(f"Number of processes: {size}")
        print(f"A: {A.nrows}x{A.ncols}, B: {B.nrows}x{B.ncols}")
        print("=" * 40)

    comm.Barrier()
    t0 = MPI.Wtime()
    matmul(A, B, C, comm, verbose=args.verbose)
    ttot = MPI.Wtime() - t0

    time = MPI.COMM_WORLD.reduce(ttot, op=MPI.MAX, root=ROOT)
    nbytes = MPI.COMM_WORLD.reduce(comm.total_bytes_transferred, op=MPI.SUM, root=ROOT)
    mem_bytes, mem_label = get_memory_usage()
    mem_max = MPI.COMM_WORLD.reduce(mem_bytes, op=MPI.MAX, root=ROOT)

    status = 0
    if rank == ROOT:
        print(f"matmul took {time:.5f} sec, moved {nbytes / 1024**2:.2f} MB, peak {mem_label} per rank {mem_max / 1024**2:.2f} MB")

        if args.check:
            expected = A.as_array() @ B.as_array()
            if np.allclose(C.as_array(), expected):
                print("Result check passed: distributed result matches numpy")
            else:
                print("Result check FAILED: distributed result does not match numpy")
                status = 1

        if args.out is not None:
            nbytes = C.to_file(args.out)
            print(f"Wrote {args.out} ({nbytes / 1024**2:.2f} MB)")

    return MPI.COMM_WORLD.bcast(status, root=ROOT)


if __name__ == "__main__":
    sys.exit(main())
