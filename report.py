# Author      : Tyson Limato
# Date        : 2025-7-9
# File Name   : report.py
import logging
from dataclasses import dataclass
from typing import List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from arena import ArrayArena

logger = logging.getLogger(__name__)


@dataclass
class DispatchRecord:
    """One chunk's round trip: when it was sent to `worker` and when the result came back."""
    job_index: int
    worker: int
    sent_at: float
    completed_at: Optional[float] = None

    @property
    def round_trip(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return self.completed_at - self.sent_at


class DispatchReport:
    """
    What the coordinator did during one run.

    Parameters:
    -----------
    records : list of DispatchRecord
        Assignments in dispatch order.
    elapsed : float
        Wall-clock seconds from seeding to the last termination message.
    workers : list of int
        Every worker rank of the run, including ones that never got a job.
    """

    def __init__(self, records: List[DispatchRecord], elapsed: float, workers):
        self.records = list(records)
        self.elapsed = elapsed
        self.workers = list(workers)

    def to_frame(self) -> pd.DataFrame:
        """One row per assignment with columns job_index, worker, sent_at, completed_at, round_trip."""
        rows = [
            {
                "job_index": r.job_index,
                "worker": r.worker,
                "sent_at": r.sent_at,
                "completed_at": r.completed_at,
                "round_trip": r.round_trip,
            }
            for r in self.records
        ]
        columns = ["job_index", "worker", "sent_at", "completed_at", "round_trip"]
        return pd.DataFrame(rows, columns=columns)

    def jobs_per_worker(self) -> dict:
        counts = {w: 0 for w in self.workers}
        for r in self.records:
            counts[r.worker] = counts.get(r.worker, 0) + 1
        return counts

    def summary(self) -> pd.DataFrame:
        """Per worker: number of jobs, total and mean round-trip seconds."""
        df = self.to_frame()
        grouped = df.groupby("worker").agg(
            jobs=("job_index", "count"),
            total_s=("round_trip", "sum"),
            mean_s=("round_trip", "mean"),
        )
        # idle workers still get a row
        grouped = grouped.reindex(self.workers)
        grouped["jobs"] = grouped["jobs"].fillna(0).astype(int)
        grouped["total_s"] = grouped["total_s"].fillna(0.0)
        return grouped

    def log_summary(self):
        logger.info("Sorted %d chunks on %d workers in %.3f s",
                    len(self.records), len(self.workers), self.elapsed)
        for worker, row in self.summary().iterrows():
            logger.info("  worker %d: %d jobs, %.3f s busy", worker, row["jobs"], row["total_s"])


def plot_dispatch_stats(report: DispatchReport, filename: str = "dispatch_stats.png"):
    """
    Uses matplotlib to plot how many chunks each worker handled and the
    round-trip time of every chunk in dispatch order, and saves to `filename`.
    """
    counts = report.jobs_per_worker()
    df = report.to_frame()

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(11, 5))

    # Jobs per worker
    ax1.bar([str(w) for w in counts], list(counts.values()))
    ax1.set_xlabel('Worker rank')
    ax1.set_ylabel('Chunks sorted')
    ax1.set_title('Load per Worker')

    # Round trip per chunk
    ax2.plot(range(1, len(df) + 1), df["round_trip"],
             label='Round trip (s)', linestyle='-', marker='o', markersize=3)
    ax2.set_xlabel('Dispatch order')
    ax2.set_ylabel('Seconds')
    ax2.set_title('Chunk Round Trip')
    ax2.legend(loc='upper right', fontsize='small')

    fig.suptitle(f'{len(df)} chunks in {report.elapsed:.2f}s')
    fig.tight_layout()
    fig.savefig(filename)
    plt.close(fig)


def _format_row(row: np.ndarray, edge: int) -> str:
    spec = "07d" if row.dtype.kind in "iu" else "07.1f"
    if row.size <= 2 * edge:
        return " ".join(format(v, spec) for v in row)
    head = " ".join(format(v, spec) for v in row[:edge])
    tail = " ".join(format(v, spec) for v in row[-edge:])
    return f"{head}  ...  {tail}"


def debug_all_numbers(arena: ArrayArena, head: int = 5, tail: int = 5, edge: int = 3):
    """Log the first `head` and last `tail` arrays, each shortened to its `edge` outer values."""
    logger.info("First %d arrays:", min(head, arena.rows))
    for i in range(min(head, arena.rows)):
        logger.info("[ %s ]", _format_row(arena.row(i), edge))
    if arena.rows <= head:
        return
    logger.info(" ...")
    for i in range(max(head, arena.rows - tail), arena.rows):
        logger.info("[ %s ]", _format_row(arena.row(i), edge))


def verify_sorted(arena: ArrayArena) -> bool:
    """True when every array of the arena is in ascending order."""
    m = arena.matrix
    return bool(np.all(m[:, 1:] >= m[:, :-1]))


def verify_permutation(before: ArrayArena, after: ArrayArena) -> bool:
    """True when each array of `after` holds the same multiset of values as in `before`."""
    if before.matrix.shape != after.matrix.shape:
        return False
    return bool(np.array_equal(np.sort(before.matrix, axis=1), np.sort(after.matrix, axis=1)))
