"""
matmul.py

Row-block distributed matrix multiply, C = A @ B.

Every rank calls matmul() with its own A, B and C. Only the root's A and B
hold the inputs, and only the root's C is defined on return:

    1. replicate: broadcast A and B from the root to every rank
    2. partition: each rank owns rows [start, end) of C
    3. compute:   each rank fills its own rows of C
    4. collect:   non-root ranks Isend their rows, the root Irecvs them
                  straight into place and waits once for all of them
"""

from mpi4py import MPI

from .matrix import dmat
from .communicator import Communicator
from .partition import row_range, block_offset, block_count
from .utilities import print_on_root

ROOT = 0


def _as_communicator(comm):
    if comm is None:
        return Communicator(MPI.COMM_WORLD)
    if isinstance(comm, MPI.Comm):
        return Communicator(comm)
    # Already a Communicator, or anything with the same methods
    return comm

################################################################################
# Phases
################################################################################

def replicate(A: dmat, B: dmat, comm, root=ROOT):
    # Overwrites the (zero) inputs on the other ranks with the root's
    comm.Bcast(A.values, root=root)
    comm.Bcast(B.values, root=root)


def local_matmul(A: dmat, B: dmat, C: dmat, start, end):
    # C[i, j] = sum_k A[i, k] * B[k, j] for the rows i in [start, end)
    if end <= start:
        return

    inner = B.nrows
    a = A.as_array()[start:end]
    b = B.as_array()
    c = C.as_array()[start:end]     # view into C's buffer

    c[...] = 0.0

    # Left to right over k, for every (i, j) at once. Each entry sees the same
    # sequence of multiplies and adds as the plain triple loop, whatever the
    # number of ranks
    for k in range(inner):
        c += a[:, k:k + 1] * b[k, :]


def collect(C: dmat, comm, root=ROOT, wait_on_send=False):
    rank = comm.rank
    size = comm.size
    rows, cols = C.shape

    if size == 1:
        # The root computed everything itself
        return []

    if rank == root:
        requests = []
        for source in range(size):
            if source == root:
                continue
            start, end = row_range(source, size, rows)
            request = comm.Irecv(C.values, block_offset(start, cols), block_count(start, end, cols),
                                 source=source, tag=source)
            requests.append(request)

        comm.Waitall(requests)
        return requests

    start, end = row_range(rank, size, rows)
    request = comm.Isend(C.values, block_offset(start, cols), block_count(start, end, cols),
                         dest=root, tag=rank)
    if wait_on_send:
        comm.Waitall([request])
    return [request]

################################################################################
# Entry points
################################################################################

def matmul(A: dmat, B: dmat, C: dmat, comm=None, root=ROOT, verbose=False, wait_on_send=False):
    """
    Distributed C = A @ B. Called by every rank at the same time.

    A is (n, k), B is (k, m) and C is (n, m), on every rank. Shapes are the
    caller's responsibility and are not checked here. On return only the
    root's C holds the product. C on the other ranks is left in an
    unspecified state and should not be read.

    comm may be None (COMM_WORLD), an mpi4py communicator, or a Communicator.
    Raises CommunicationError if any broadcast, send, receive or wait fails.
    """
    comm = _as_communicator(comm)
    rank = comm.rank
    size = comm.size

    t0 = MPI.Wtime()
    replicate(A, B, comm, root=root)
    t1 = MPI.Wtime()

    start, end = row_range(rank, size, C.nrows)
    local_matmul(A, B, C, start, end)
    t2 = MPI.Wtime()

    collect(C, comm, root=root, wait_on_send=wait_on_send)
    t3 = MPI.Wtime()

    if verbose:
        print_on_root(f"matmul ({A.nrows}x{A.ncols}) @ ({B.nrows}x{B.ncols}) on {size} ranks: "
                      f"replicate {t1 - t0:.5f}s, compute {t2 - t1:.5f}s, collect {t3 - t2:.5f}s",
                      comm=comm, root=root, flush=True)


multiply = matmul


def sequential_matmul(A: dmat, B: dmat, C: dmat):
    # Reference triple loop, single process
    for i in range(C.nrows):
        for j in range(C.ncols):
            C.set(i, j, 0.0)

            for k in range(B.nrows):
                C.incr(i, j, A.get(i, k) * B.get(k, j))
