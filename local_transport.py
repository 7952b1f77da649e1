# Author      : Tyson Limato
# Date        : 2025-7-5
# File Name   : local_transport.py
import threading
import time
from typing import List, NamedTuple

import numpy as np

from errors import ProtocolViolation, TransportFailure
from messages import Envelope
from transport import Transport


class _Message(NamedTuple):
    source: int
    tag: int
    payload: np.ndarray


class SentRecord(NamedTuple):
    source: int
    dest: int
    tag: int


class LocalFabric:
    """
    In-process stand-in for an MPI communicator.

    Each rank owns a mailbox; `send` copies the payload into the destination
    mailbox and wakes up anyone probing. Messages from one source to one
    destination are matched in send order, like MPI's non-overtaking rule.
    Used to run the coordinator and the workers as threads of one process.

    Parameters:
    -----------
    size : int
        Number of ranks (coordinator included).
    timeout : float or None
        Seconds a blocking call may wait before raising `TransportFailure`.
        None waits forever, which is what a real MPI run does.
    """

    def __init__(self, size: int, timeout: float = None):
        if size < 1:
            raise ValueError("a fabric needs at least one rank")
        self.size = size
        self.timeout = timeout
        self._cond = threading.Condition()
        self._mailboxes: List[List[_Message]] = [[] for _ in range(size)]
        # Every message ever sent, in send order
        self.sent: List[SentRecord] = []

    def endpoint(self, rank: int, master: int = 0) -> "LocalTransport":
        return LocalTransport(self, rank, master)

    def pending(self, rank: int) -> int:
        with self._cond:
            return len(self._mailboxes[rank])

    def _check_rank(self, rank):
        if not 0 <= rank < self.size:
            raise TransportFailure(f"rank {rank} does not exist (size {self.size})")

    def _post(self, source, dest, tag, payload):
        self._check_rank(dest)
        message = _Message(source, tag, np.array(payload, copy=True))
        with self._cond:
            self._mailboxes[dest].append(message)
            self.sent.append(SentRecord(source, dest, tag))
            self._cond.notify_all()

    def _wait_for(self, rank, match, consume=False) -> _Message:
        """Block until a message in `rank`'s mailbox satisfies `match`; optionally dequeue it."""
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        with self._cond:
            while True:
                mailbox = self._mailboxes[rank]
                for i, message in enumerate(mailbox):
                    if match(message):
                        if consume:
                            del mailbox[i]
                        return message
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise TransportFailure(f"rank {rank} timed out waiting for a message")
                self._cond.wait(remaining)

    def _take(self, rank, source, tag) -> _Message:
        return self._wait_for(rank, lambda m: m.source == source and m.tag == tag, consume=True)


class LocalTransport(Transport):
    """One rank's view of a `LocalFabric`."""

    def __init__(self, fabric: LocalFabric, rank: int, master: int = 0):
        fabric._check_rank(rank)
        self.fabric = fabric
        self.rank = rank
        self.size = fabric.size
        self.master = master

    def send(self, payload: np.ndarray, tag: int, dest: int):
        self.fabric._post(self.rank, dest, tag, payload)

    def recv_exact(self, buffer: np.ndarray, tag: int, source: int):
        message = self.fabric._take(self.rank, source, tag)
        if message.payload.size > buffer.size:
            raise TransportFailure(
                f"message truncated: {message.payload.size} elements into a buffer of {buffer.size}"
            )
        if message.payload.size != buffer.size:
            raise ProtocolViolation(
                f"expected {buffer.size} elements from rank {source}, got {message.payload.size}",
                tag=tag, source=source,
            )
        buffer[...] = message.payload.reshape(buffer.shape)

    def probe_any(self) -> Envelope:
        message = self.fabric._wait_for(self.rank, lambda m: True)
        return Envelope(message.tag, message.source)

    def probe(self, source: int) -> Envelope:
        message = self.fabric._wait_for(self.rank, lambda m: m.source == source)
        return Envelope(message.tag, message.source)
