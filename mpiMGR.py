# Author      : Tyson Limato
# Date        : 2025-6-18
# File Name   : mpiMGR.py
import numpy as np
from mpi4py import MPI
from mpi4py.util.dtlib import from_numpy_dtype

from errors import ProtocolViolation, TransportFailure
from messages import Envelope
from transport import Transport


class MPIManager(Transport):
    """
    A utility class to handle the MPI messaging of the distributed sort using `mpi4py`.

    All payloads are numpy buffers sent with the upper-case (buffer) API, so
    a chunk of the dataset goes over the wire without pickling.

    Parameters:
    -----------
    comm : MPI.Comm
        Communicator to use (default: MPI.COMM_WORLD).
    master : int
        Rank of the coordinator (default: 0).

    Methods:
    --------
    send(payload, tag, dest)
        Blocking buffer send.

    recv_exact(buffer, tag, source)
        Blocking buffer receive with a known envelope.

    probe_any() / probe(source)
        Learn the tag and source of the next pending message without reading it.

    check_tag_range(highest_tag)
        Fail early when the protocol needs tags above MPI_TAG_UB.

    abort(code)
        Tear down every rank of the communicator.
    """

    def __init__(self, comm=None, master: int = 0):
        # Initialize the MPI communicator
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        # Get the rank (ID) of the current process
        self.rank = self.comm.Get_rank()
        # Get the total number of processes
        self.size = self.comm.Get_size()
        self.master = master

    def send(self, payload: np.ndarray, tag: int, dest: int):
        try:
            self.comm.Send([payload, from_numpy_dtype(payload.dtype)], dest=dest, tag=tag)
        except MPI.Exception as exc:
            raise TransportFailure(f"send of tag {tag} to rank {dest} failed: {exc}") from exc

    def recv_exact(self, buffer: np.ndarray, tag: int, source: int):
        status = MPI.Status()
        datatype = from_numpy_dtype(buffer.dtype)
        try:
            self.comm.Recv([buffer, datatype], source=source, tag=tag, status=status)
        except MPI.Exception as exc:
            raise TransportFailure(f"receive of tag {tag} from rank {source} failed: {exc}") from exc

        # A short message would leave stale data in the tail of the buffer
        count = status.Get_count(datatype)
        if count != buffer.size:
            raise ProtocolViolation(
                f"expected {buffer.size} elements from rank {source}, got {count}",
                tag=tag, source=source,
            )

    def probe_any(self) -> Envelope:
        return self._probe(MPI.ANY_SOURCE)

    def probe(self, source: int) -> Envelope:
        return self._probe(source)

    def _probe(self, source) -> Envelope:
        status = MPI.Status()
        try:
            self.comm.Probe(source=source, tag=MPI.ANY_TAG, status=status)
        except MPI.Exception as exc:
            raise TransportFailure(f"probe failed on rank {self.rank}: {exc}") from exc
        return Envelope(status.Get_tag(), status.Get_source())

    def check_tag_range(self, highest_tag: int):
        # MPI only guarantees tags up to 32767; the real bound is an attribute
        tag_ub = self.comm.Get_attr(MPI.TAG_UB)
        if tag_ub is not None and highest_tag > tag_ub:
            raise ValueError(
                f"this MPI library allows tags up to {tag_ub}, the run needs {highest_tag}; "
                f"use fewer arrays"
            )

    def abort(self, code: int = 1):
        self.comm.Abort(code)
