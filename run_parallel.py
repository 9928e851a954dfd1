"""
Multi-process runner for the COBA benchmark.

Starts one process per rank; all ranks run the same benchmark on their own
slice of neurons and exchange spikes every timestep through shared memory.
Rank 0 writes elapsed.dat; spike and timing files carry the rank.

Usage:
  python run_parallel.py --ranks 4 --fast --simtime 1
  python run_parallel.py --ranks 2 --networkscale 2 --dir /tmp/coba
"""

import sys
import os
import logging
import multiprocessing
from multiprocessing import cpu_count

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from benchmark.config import resolve_config
from benchmark.errors import BenchmarkError, ConfigurationError
from benchmark.runner import BenchmarkRunner
from engine.comm import SharedMemoryGroup
from run_benchmark import (
    BenchmarkArgumentParser, add_benchmark_arguments, options_from_args,
    print_banner, setup_logging,
)

logger = logging.getLogger("run_parallel")

MAX_DEFAULT_RANKS = 4


def run_rank(rank, size, shared, config, verbose):
    """Entry point of one rank. Exits with the rank's status code."""
    setup_logging(fast=config.fast, verbose=verbose, rank=rank)
    group = SharedMemoryGroup.for_rank(rank, size, shared)
    try:
        result = BenchmarkRunner(config=config, group=group).run()
    except BenchmarkError as exc:
        logger.error("error: %s", exc)
        sys.exit(1)
    sys.exit(result.exit_code)


def launch(config, n_ranks, verbose=False, start_method='spawn'):
    """Run the benchmark on ``n_ranks`` processes.

    Returns
    -------
    exit_codes : list of int
        One per rank, in rank order.
    """
    ctx = multiprocessing.get_context(start_method)
    shared = SharedMemoryGroup.allocate(ctx, n_ranks, config.n_exc + config.n_inh)
    procs = [
        ctx.Process(target=run_rank, args=(rank, n_ranks, shared, config, verbose),
                    name=f"coba-rank-{rank}")
        for rank in range(n_ranks)
    ]
    for p in procs:
        p.start()
    for p in procs:
        p.join()
    return [p.exitcode for p in procs]


def main(argv=None):
    parser = BenchmarkArgumentParser(
        description='Multi-process COBA benchmark', add_help=False)
    add_benchmark_arguments(parser)
    parser.add_argument('--ranks', type=int, default=None,
                        help='number of processes (default: cores, at most '
                             f'{MAX_DEFAULT_RANKS})')
    args = parser.parse_args(argv)
    if args.help:
        parser.print_help()
        return 1

    setup_logging(fast=args.fast, verbose=args.verbose)
    n_ranks = args.ranks if args.ranks is not None else min(cpu_count(), MAX_DEFAULT_RANKS)
    options = options_from_args(args)
    try:
        if n_ranks < 1:
            raise ConfigurationError(f"ranks must be positive, got {n_ranks}")
        config = resolve_config(**options)
    except ConfigurationError as exc:
        logger.error("error: %s", exc)
        return 1

    if not args.fast:
        print_banner(options, ranks=n_ranks)

    exit_codes = launch(config, n_ranks, verbose=args.verbose)
    failed = [rank for rank, code in enumerate(exit_codes) if code != 0]
    if failed:
        logger.error("Ranks %s exited with errors", failed)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
