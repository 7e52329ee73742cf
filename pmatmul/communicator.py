# communicator.py - the message passing the distributed multiply relies on

from mpi4py import MPI
import numpy as np

from .utilities import dtype_to_mpi


class CommunicationError(RuntimeError):
    """A broadcast, send, receive or wait failed. Fatal for the whole multiply."""

    def __init__(self, operation, message):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class Communicator:
    """
    Wraps an mpi4py communicator with the handful of operations the multiply
    uses: Bcast, Isend/Irecv on a slice of a flat buffer, and Waitall.

    Every MPI.Exception is re-raised as CommunicationError.
    """

    def __init__(self, comm: MPI.Comm = None):
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.total_bytes_transferred = 0
        self.messages_sent = 0
        self.messages_received = 0

    @property
    def rank(self):
        return self.comm.Get_rank()

    @property
    def size(self):
        return self.comm.Get_size()

    def Get_size(self):
        return self.comm.Get_size() # number of processes

    def Get_rank(self):
        return self.comm.Get_rank() # rank of the current process

    def Barrier(self):
        try:
            return self.comm.Barrier()
        except MPI.Exception as e:
            raise CommunicationError("Barrier", str(e)) from e

    ############################################################################
    # Argument checks (before anything reaches the transport)
    ############################################################################

    def _check_peer(self, operation, peer):
        if not (0 <= peer < self.size):
            raise CommunicationError(operation, f"rank {peer} is outside [0, {self.size})")

    @staticmethod
    def _check_range(operation, buf, offset, count):
        if buf.ndim != 1 or not buf.flags['C_CONTIGUOUS']:
            raise CommunicationError(operation, "buffer must be a flat contiguous array")
        if offset < 0 or count < 0 or offset + count > buf.size:
            raise CommunicationError(operation, f"[{offset}, {offset + count}) is outside a buffer of {buf.size} elements")

    ############################################################################
    # Collective
    ############################################################################

    def Bcast(self, buf: np.ndarray, root=0):
        self._check_peer("Bcast", root)
        try:
            self.comm.Bcast([buf, dtype_to_mpi(buf.dtype)], root=root)
        except MPI.Exception as e:
            raise CommunicationError("Bcast", str(e)) from e

        # Root sends to every other process, the others receive once
        if self.rank == root:
            self.total_bytes_transferred += buf.nbytes * (self.size - 1)
        else:
            self.total_bytes_transferred += buf.nbytes

    ############################################################################
    # Point-to-point (non-blocking)
    ############################################################################

    def Isend(self, buf: np.ndarray, offset, count, dest, tag) -> MPI.Request:
        self._check_peer("Isend", dest)
        self._check_range("Isend", buf, offset, count)

        block = buf[offset:offset + count]
        try:
            request = self.comm.Isend([block, dtype_to_mpi(buf.dtype)], dest=dest, tag=tag)
        except MPI.Exception as e:
            raise CommunicationError("Isend", str(e)) from e

        self.messages_sent += 1
        self.total_bytes_transferred += block.nbytes
        return request

    def Irecv(self, buf: np.ndarray, offset, count, source, tag) -> MPI.Request:
        self._check_peer("Irecv", source)
        self._check_range("Irecv", buf, offset, count)

        # A view, so the message lands in place
        block = buf[offset:offset + count]
        try:
            request = self.comm.Irecv([block, dtype_to_mpi(buf.dtype)], source=source, tag=tag)
        except MPI.Exception as e:
            raise CommunicationError("Irecv", str(e)) from e

        self.messages_received += 1
        self.total_bytes_transferred += block.nbytes
        return request

    def Waitall(self, requests):
        if len(requests) == 0:
            return
        try:
            MPI.Request.Waitall(list(requests))
        except MPI.Exception as e:
            raise CommunicationError("Waitall", str(e)) from e
