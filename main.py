# Author      : Tyson Limato
# Date        : 2025-6-1
# File Name   : main.py
# Description : Sorts a large set of independent integer arrays across MPI
#               ranks. Rank 0 owns the dataset and hands out chunks of
#               `--payload` arrays to whichever worker is free; each worker
#               sorts its chunk with a thread pool and sends it back.
#
# Usage       : mpiexec -n 4 python main.py --arrays 10000 --length 100000 --verify
#               python main.py --local 3 --arrays 64 --length 1000 --debug
import argparse
import logging
import sys

from mpi4py import MPI

from arena import ArrayArena
from errors import SortPipelineError, VerificationFailure
from example_data_generator import GENERATORS
from mpiMGR import MPIManager
from pipeline import run_local, run_rank
from report import debug_all_numbers, plot_dispatch_stats, verify_permutation, verify_sorted
from sort_config import PAYLOAD_SIZE, SORT_THREADS, TOTAL_ARRAYS, TOTAL_NUMBERS, SortConfig

logger = logging.getLogger("main")


def configure_logging(rank: int, verbose: bool = False):
    """Prefix every log line with the process rank."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=f"[{rank}] %(message)s",
        stream=sys.stdout,
        force=True,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Greedy MPI work-queue sort")
    parser.add_argument('--arrays',  type=int, default=TOTAL_ARRAYS, help="Number of arrays (A).")
    parser.add_argument('--length',  type=int, default=TOTAL_NUMBERS, help="Elements per array (L).")
    parser.add_argument('--payload', type=int, default=PAYLOAD_SIZE, help="Arrays per job (P), must divide --arrays.")
    parser.add_argument('--threads', type=int, default=SORT_THREADS, help="Sort threads per worker.")
    parser.add_argument('--dtype',   type=str, default="int32", choices=["int32", "int64", "float32", "float64"])
    parser.add_argument('--pattern', type=str, default="descending", choices=sorted(GENERATORS))
    parser.add_argument('--seed',    type=int, default=None, help="Seed for --pattern random.")
    parser.add_argument('--verify',  action='store_true', help="Check every array is sorted and unchanged as a multiset.")
    parser.add_argument('--debug',   action='store_true', help="Dump the first/last arrays before and after.")
    parser.add_argument('--plot',    type=str, default=None, help="Save dispatch stats to this PNG.")
    parser.add_argument('--local',   type=int, default=None, metavar='N',
                        help="Run N worker threads in this process instead of using MPI ranks.")
    parser.add_argument('--verbose', '-v', action='store_true')
    args = parser.parse_args(argv)

    args.config = SortConfig(
        total_arrays=args.arrays,
        array_length=args.length,
        payload_size=args.payload,
        sort_threads=args.threads,
        dtype=args.dtype,
    )
    try:
        args.config.validate()
    except ValueError as exc:
        parser.error(str(exc))
    return args


def prepare_dataset(args) -> ArrayArena:
    config = args.config
    logger.info("Preparing arrays...")
    arena = ArrayArena(config.total_arrays, config.array_length, config.dtype)
    if args.pattern == "random":
        GENERATORS["random"](arena, seed=args.seed)
    else:
        GENERATORS[args.pattern](arena)
    logger.info("DONE")
    return arena


def finish(args, arena, original, report):
    report.log_summary()
    if args.debug:
        debug_all_numbers(arena)
    if args.verify:
        if not verify_sorted(arena):
            raise VerificationFailure("Result is not sorted correctly")
        if not verify_permutation(original, arena):
            raise VerificationFailure("Sorted arrays do not hold the original values")
        logger.info("Verified %d arrays", arena.rows)
    if args.plot:
        plot_dispatch_stats(report, args.plot)
        logger.info("Dispatch stats saved to %s", args.plot)


def run_local_mode(args):
    config = args.config
    configure_logging(config.master, args.verbose)
    try:
        arena = prepare_dataset(args)
        original = arena.copy() if args.verify else None
        if args.debug:
            debug_all_numbers(arena)
        report, _ = run_local(config, arena, args.local)
        finish(args, arena, original, report)
    except SortPipelineError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(1)


def main(argv=None):
    args = parse_args(argv)
    config = args.config

    if args.local is not None:
        run_local_mode(args)
        return

    mpi_mgr = MPIManager(MPI.COMM_WORLD, master=config.master)
    configure_logging(mpi_mgr.rank, args.verbose)
    if mpi_mgr.size < 2:
        logger.error("Need at least 2 MPI ranks (1 coordinator + workers), got %d; "
                     "use --local N to run without MPI", mpi_mgr.size)
        sys.exit(2)
    try:
        mpi_mgr.check_tag_range(config.die_tag)
    except ValueError as exc:
        logger.error("%s", exc)
        sys.exit(2)

    try:
        if mpi_mgr.rank == config.master:
            arena = prepare_dataset(args)
            original = arena.copy() if args.verify else None
            if args.debug:
                debug_all_numbers(arena)
            report = run_rank(mpi_mgr, config, arena)
            finish(args, arena, original, report)
        else:
            run_rank(mpi_mgr, config)
    except SortPipelineError as exc:
        # Every pipeline error is fatal; take the other ranks down with us
        logger.error("%s: %s", type(exc).__name__, exc)
        mpi_mgr.abort(1)


if __name__ == "__main__":
    main()
