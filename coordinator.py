# Author      : Tyson Limato
# Date        : 2025-7-8
# File Name   : coordinator.py
import logging
import time

import numpy as np

from arena import ArrayArena
from errors import ProtocolViolation
from messages import Assignment, TagCodec, Terminate
from report import DispatchRecord, DispatchReport
from sort_config import SortConfig
from transport import Transport

logger = logging.getLogger(__name__)


class Coordinator:
    """
    Hands out chunks of the dataset to workers as they become free.

    Every worker is seeded with one chunk; from then on each returned result
    is answered with the next unassigned chunk, so fast workers end up doing
    more of the work. When the job list runs out the remaining results are
    drained and every worker is told to stop.

    Parameters:
    -----------
    transport : Transport
        The coordinator's endpoint; its rank must be `config.master`.
    config : SortConfig
        Run dimensions.
    arena : ArrayArena
        The fully populated dataset. Results are written back into it in place.
    workers : list of int
        Worker ranks (default: every rank of the transport except the master).

    Attributes:
    -----------
    outstanding : dict
        worker rank -> job index currently assigned to it.
    records : list of DispatchRecord
        One entry per assignment, in dispatch order.
    """

    def __init__(self, transport: Transport, config: SortConfig, arena: ArrayArena,
                 workers=None):
        if arena.rows != config.total_arrays or arena.columns != config.array_length:
            raise ValueError(
                f"arena is {arena.rows}x{arena.columns}, config expects "
                f"{config.total_arrays}x{config.array_length}"
            )
        if arena.dtype != config.np_dtype:
            raise ValueError(f"arena dtype {arena.dtype} does not match config dtype {config.dtype}")

        self.transport = transport
        self.config = config
        self.arena = arena
        self.rank = transport.rank
        if transport.rank != config.master:
            raise ValueError(
                f"coordinator must run on rank {config.master}, transport is rank {transport.rank}"
            )

        self.workers = list(workers) if workers is not None else transport.worker_ranks()
        if not self.workers:
            raise ValueError("need at least one worker rank")
        if self.rank in self.workers:
            raise ValueError(f"coordinator rank {self.rank} cannot also be a worker")

        self.codec = TagCodec(config)
        self.outstanding = {}
        self.records = []
        self._open_records = {}

    def run(self) -> DispatchReport:
        start = time.perf_counter()
        jobs = iter(self.config.job_indices())

        if self.config.num_jobs < len(self.workers):
            logger.warning("only %d jobs for %d workers; %d workers stay idle",
                           self.config.num_jobs, len(self.workers),
                           len(self.workers) - self.config.num_jobs)

        logger.info("Seeding workers")
        for worker, job_index in zip(self.workers, jobs):
            self._assign(job_index, worker)

        logger.info("Sending remaining jobs")
        for job_index in jobs:
            worker = self._collect_result()
            self._assign(job_index, worker)

        logger.info("Done sending jobs, waiting to be completed")
        while self.outstanding:
            self._collect_result()
        logger.info("Drain complete")

        logger.info("Killing workers")
        for worker in self.workers:
            self._terminate(worker)
        logger.info("DONE")

        return DispatchReport(self.records, time.perf_counter() - start, self.workers)

    def _assign(self, job_index: int, worker: int):
        if worker in self.outstanding:
            raise ProtocolViolation(
                f"worker {worker} still owes job {self.outstanding[worker]}",
                source=worker,
            )
        tag = self.codec.encode(Assignment(job_index))
        self.transport.send(self.arena.chunk(job_index, self.config.payload_size), tag, worker)

        self.outstanding[worker] = job_index
        record = DispatchRecord(job_index, worker, time.perf_counter())
        self.records.append(record)
        self._open_records[job_index] = record
        logger.debug("job %d -> worker %d", job_index, worker)

    def _collect_result(self) -> int:
        """Wait for the next result from any worker, store it, and return the worker's rank."""
        envelope = self.transport.probe_any()
        message = self.codec.decode(envelope.tag, envelope.source)
        if isinstance(message, Terminate):
            raise ProtocolViolation(
                f"coordinator received the die tag from rank {envelope.source}",
                tag=envelope.tag, source=envelope.source,
            )

        job_index = message.job_index
        if self.outstanding.get(envelope.source) != job_index:
            raise ProtocolViolation(
                f"rank {envelope.source} returned job {job_index} but was assigned "
                f"{self.outstanding.get(envelope.source)}",
                tag=envelope.tag, source=envelope.source,
            )

        self.transport.recv_from(envelope, self.arena.chunk(job_index, self.config.payload_size))
        del self.outstanding[envelope.source]
        self._open_records.pop(job_index).completed_at = time.perf_counter()
        logger.debug("job %d <- worker %d", job_index, envelope.source)
        return envelope.source

    def _terminate(self, worker: int):
        payload = np.array([worker], dtype=self.config.np_dtype)
        self.transport.send(payload, self.codec.encode(Terminate()), worker)
