# Author      : Tyson Limato
# Date        : 2025-7-3
# File Name   : transport.py
import numpy as np

from messages import Envelope


class Transport:
    """
    Point-to-point messaging between the coordinator and the workers.

    Every implementation must deliver a sent message exactly once to a
    matching receive, and keep messages from one source to one destination
    in the order they were sent. Failures raise `TransportFailure` and are
    never retried.

    Methods:
    --------
    send(payload, tag, dest)
        Send a numpy buffer to `dest` under `tag`.

    recv_exact(buffer, tag, source)
        Receive the message with the given tag from `source` into `buffer`.

    probe_any() -> Envelope
        Block until a message from any source is pending and return its envelope.

    probe(source) -> Envelope
        Same as `probe_any`, restricted to one source.

    recv_from(envelope, buffer)
        Consume the message an earlier probe reported.
    """

    rank: int
    size: int
    master: int = 0

    def send(self, payload: np.ndarray, tag: int, dest: int):
        raise NotImplementedError

    def recv_exact(self, buffer: np.ndarray, tag: int, source: int):
        raise NotImplementedError

    def probe_any(self) -> Envelope:
        raise NotImplementedError

    def probe(self, source: int) -> Envelope:
        raise NotImplementedError

    def recv_from(self, envelope: Envelope, buffer: np.ndarray):
        return self.recv_exact(buffer, envelope.tag, envelope.source)

    def worker_ranks(self) -> list:
        return [r for r in range(self.size) if r != self.master]
