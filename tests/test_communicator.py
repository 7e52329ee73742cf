# test_communicator.py

import numpy as np
import pytest
from mpi4py import MPI

from pmatmul.communicator import Communicator, CommunicationError


class FailingComm:
    # Looks like a one-rank MPI.Comm whose transport calls all fail
    def Get_rank(self):
        return 0

    def Get_size(self):
        return 1

    def Bcast(self, buf, root=0):
        raise MPI.Exception(MPI.ERR_OTHER)

    def Isend(self, buf, dest, tag):
        raise MPI.Exception(MPI.ERR_OTHER)

    def Irecv(self, buf, source, tag):
        raise MPI.Exception(MPI.ERR_OTHER)

    def Barrier(self):
        raise MPI.Exception(MPI.ERR_OTHER)


def test_defaults_to_comm_world():
    comm = Communicator()
    assert comm.comm is MPI.COMM_WORLD
    assert comm.rank == MPI.COMM_WORLD.Get_rank()
    assert comm.size == MPI.COMM_WORLD.Get_size()


def test_bcast_on_a_single_rank():
    comm = Communicator(MPI.COMM_SELF)
    buf = np.arange(5, dtype=np.float64)
    comm.Bcast(buf, root=0)

    assert np.array_equal(buf, np.arange(5))
    assert comm.total_bytes_transferred == 0


def test_isend_irecv_land_at_offset():
    comm = Communicator(MPI.COMM_SELF)
    src = np.arange(10, dtype=np.float64)
    dst = np.zeros(10, dtype=np.float64)

    recv = comm.Irecv(dst, 4, 3, source=0, tag=7)
    send = comm.Isend(src, 2, 3, dest=0, tag=7)
    comm.Waitall([recv, send])

    assert np.array_equal(dst, [0, 0, 0, 0, 2, 3, 4, 0, 0, 0])
    assert comm.messages_sent == 1
    assert comm.messages_received == 1
    assert comm.total_bytes_transferred == 2 * 3 * 8


def test_zero_length_messages():
    comm = Communicator(MPI.COMM_SELF)
    buf = np.zeros(4, dtype=np.float64)

    recv = comm.Irecv(buf, 4, 0, source=0, tag=1)
    send = comm.Isend(buf, 4, 0, dest=0, tag=1)
    comm.Waitall([recv, send])

    assert comm.total_bytes_transferred == 0


def test_waitall_on_nothing():
    Communicator(MPI.COMM_SELF).Waitall([])


@pytest.mark.parametrize("peer", [-1, 1, 5])
def test_invalid_peer(peer):
    comm = Communicator(MPI.COMM_SELF)
    buf = np.zeros(4)

    with pytest.raises(CommunicationError) as excinfo:
        comm.Isend(buf, 0, 4, dest=peer, tag=0)
    assert excinfo.value.operation == "Isend"

    with pytest.raises(CommunicationError):
        comm.Irecv(buf, 0, 4, source=peer, tag=0)

    with pytest.raises(CommunicationError):
        comm.Bcast(buf, root=peer)

    assert comm.messages_sent == 0 and comm.messages_received == 0


@pytest.mark.parametrize("offset, count", [(-1, 2), (3, 2), (0, -1), (5, 0)])
def test_range_outside_buffer(offset, count):
    comm = Communicator(MPI.COMM_SELF)
    with pytest.raises(CommunicationError):
        comm.Isend(np.zeros(4), offset, count, dest=0, tag=0)


def test_buffer_must_be_flat():
    comm = Communicator(MPI.COMM_SELF)
    with pytest.raises(CommunicationError):
        comm.Irecv(np.zeros((2, 2)), 0, 4, source=0, tag=0)


def test_mpi_errors_become_communication_errors():
    comm = Communicator(FailingComm())
    buf = np.zeros(4)

    with pytest.raises(CommunicationError) as excinfo:
        comm.Bcast(buf, root=0)
    assert excinfo.value.operation == "Bcast"
    assert isinstance(excinfo.value.__cause__, MPI.Exception)

    with pytest.raises(CommunicationError, match="^Isend"):
        comm.Isend(buf, 0, 4, dest=0, tag=0)

    with pytest.raises(CommunicationError, match="^Irecv"):
        comm.Irecv(buf, 0, 4, source=0, tag=0)

    with pytest.raises(CommunicationError, match="^Barrier"):
        comm.Barrier()

    # Failed sends and receives are not counted
    assert comm.messages_sent == 0 and comm.messages_received == 0
    assert comm.total_bytes_transferred == 0


def test_communication_error_is_a_runtime_error():
    assert issubclass(CommunicationError, RuntimeError)
