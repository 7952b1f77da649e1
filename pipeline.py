# Author      : Tyson Limato
# Date        : 2025-7-10
# File Name   : pipeline.py
import logging
import threading

from arena import ArrayArena
from coordinator import Coordinator
from local_transport import LocalFabric
from sort_config import SortConfig
from transport import Transport
from worker import SortWorker

logger = logging.getLogger(__name__)


def run_rank(transport: Transport, config: SortConfig, arena: ArrayArena = None, engine=None):
    """
    Run this rank's side of the protocol: the coordinator on `config.master`,
    a worker everywhere else.

    Returns the coordinator's DispatchReport, or the list of job indices a worker sorted.
    """
    if transport.rank == config.master:
        if arena is None:
            raise ValueError("the coordinator rank needs the dataset arena")
        return Coordinator(transport, config, arena).run()
    return SortWorker(transport, config, engine).run()


def run_local(config: SortConfig, arena: ArrayArena, num_workers: int,
              engine_factory=None, timeout: float = None):
    """
    Run the coordinator and `num_workers` workers as threads of this process.

    Parameters:
    -----------
    config : SortConfig
        Run dimensions.
    arena : ArrayArena
        Populated dataset; sorted in place.
    num_workers : int
        Number of worker ranks.
    engine_factory : callable
        Optional rank -> ParallelSortEngine hook; workers build their own engine when omitted.
    timeout : float
        Passed to the LocalFabric; None blocks forever like MPI.

    Returns:
    --------
    tuple :
        - report : DispatchReport
        - jobs : dict mapping worker rank to the job indices it sorted
    """
    if num_workers < 1:
        raise ValueError("need at least one worker")
    config.validate()

    fabric = LocalFabric(num_workers + 1, timeout=timeout)
    worker_ranks = [r for r in range(fabric.size) if r != config.master]
    jobs = {}
    errors = []

    def serve(rank):
        engine = engine_factory(rank) if engine_factory else None
        try:
            jobs[rank] = SortWorker(fabric.endpoint(rank, config.master), config, engine).run()
        except Exception as exc:
            logger.error("worker %d failed: %s", rank, exc)
            errors.append(exc)
        finally:
            if engine is not None:
                engine.close()

    threads = [
        threading.Thread(target=serve, args=(rank,), name=f"worker-{rank}", daemon=True)
        for rank in worker_ranks
    ]
    for t in threads:
        t.start()

    report = Coordinator(fabric.endpoint(config.master, config.master), config, arena).run()

    for t in threads:
        t.join()
    if errors:
        raise errors[0]
    return report, jobs
