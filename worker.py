# Author      : Tyson Limato
# Date        : 2025-7-8
# File Name   : worker.py
import enum
import logging

import numpy as np

from arena import ArrayArena
from errors import ProtocolViolation
from messages import Assignment, TagCodec, Terminate
from sort_config import SortConfig
from sort_engine import ParallelSortEngine
from transport import Transport

logger = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    IDLE = "idle"
    RECEIVING = "receiving"
    SORTING = "sorting"
    SENDING = "sending"
    TERMINATED = "terminated"


class SortWorker:
    """
    Receives chunks from the coordinator, sorts them and sends them back.

    The worker holds exactly one chunk at a time in a scratch buffer that is
    allocated once and reused for every job.

    Parameters:
    -----------
    transport : Transport
        This rank's endpoint.
    config : SortConfig
        Run dimensions; fixes the scratch buffer size and the tag space.
    engine : ParallelSortEngine
        Sorter for one chunk. Built from `config.sort_threads` when omitted.
    """

    def __init__(self, transport: Transport, config: SortConfig,
                 engine: ParallelSortEngine = None):
        self.transport = transport
        self.config = config
        self.rank = transport.rank
        self.master = transport.master
        self.codec = TagCodec(config)
        self._owns_engine = engine is None
        self.engine = engine if engine is not None else ParallelSortEngine(config.sort_threads)
        self.scratch = ArrayArena(config.payload_size, config.array_length, config.dtype)
        # The die message carries one element
        self._die_buffer = np.zeros(1, dtype=config.np_dtype)
        self.state = WorkerState.IDLE
        self.jobs_done = []

    def run(self) -> list:
        """Serve jobs until the termination signal arrives. Returns the job indices sorted."""
        try:
            while self.step():
                pass
        finally:
            if self._owns_engine:
                self.engine.close()
        logger.debug("worker %d processed %d jobs", self.rank, len(self.jobs_done))
        return self.jobs_done

    def step(self) -> bool:
        """Handle one message. Returns False once terminated."""
        self.state = WorkerState.RECEIVING
        envelope = self.transport.probe(self.master)
        if envelope.source != self.master:
            raise ProtocolViolation(
                f"worker {self.rank} got a message from rank {envelope.source}",
                tag=envelope.tag, source=envelope.source,
            )
        message = self.codec.decode(envelope.tag, envelope.source)

        if isinstance(message, Terminate):
            # Consume the die message so nothing stays buffered after exit
            self.transport.recv_from(envelope, self._die_buffer)
            self.state = WorkerState.TERMINATED
            return False

        batch = self.scratch.matrix
        self.transport.recv_from(envelope, batch)

        self.state = WorkerState.SORTING
        self.engine.sort_batch(batch)

        self.state = WorkerState.SENDING
        self.transport.send(batch, self.codec.encode(Assignment(message.job_index)), self.master)

        self.jobs_done.append(message.job_index)
        self.state = WorkerState.IDLE
        return True
