"""
COBA benchmark: Vogels & Abbott (2005) network as in Brette et al. (2007).

4000 conductance-based integrate-and-fire neurons (3200 E, 800 I) with 2%
random connectivity, scaled by --networkscale.

Usage:
  python run_benchmark.py                          # 20 s, spike files in /tmp
  python run_benchmark.py --fast --simtime 1       # timing only, no spike IO
  python run_benchmark.py --networkscale 4 --fast  # 16000 neurons, p=0.005
  python run_benchmark.py --fee ee.wmat --fii ii.wmat
  python run_benchmark.py --save /tmp/net.txt

Exit code 0 on success, 1 on usage errors, --help, harness errors and
failed simulation runs.
"""

import sys
import os
import argparse
import logging

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from benchmark.config import (
    DEFAULT_DELAY_STEPS, DEFAULT_NETWORKSCALE, DEFAULT_SEED, DEFAULT_SIMTIME,
    DEFAULT_TIMEFILE,
)
from benchmark.errors import BenchmarkError
from benchmark.runner import BenchmarkRunner

logger = logging.getLogger("run_benchmark")


class BenchmarkArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on invalid usage."""

    def error(self, message):
        self.print_usage(sys.stderr)
        sys.stderr.write(f"{self.prog}: error: {message}\n")
        sys.exit(1)


def add_benchmark_arguments(parser):
    parser.add_argument('--help', action='store_true',
                        help='produce help message')
    parser.add_argument('--simtime', type=float, default=None,
                        help=f'simulation time in s (default {DEFAULT_SIMTIME})')
    parser.add_argument('--networkscale', type=int, default=None,
                        help='network scale, relative to 4000 neurons '
                             f'(default {DEFAULT_NETWORKSCALE})')
    parser.add_argument('--save', type=str, default=None,
                        help='path for saving the network state')
    parser.add_argument('--num_timesteps_delay', type=int, default=None,
                        help='the number of timesteps of synaptic delay '
                             f'(default {DEFAULT_DELAY_STEPS})')
    parser.add_argument('--fast', action='store_true',
                        help='turns off most monitoring to reduce IO')
    parser.add_argument('--dir', type=str, default=None,
                        help='load/save directory (default: temp directory)')
    parser.add_argument('--fee', type=str, default=None,
                        help='file with EE connections')
    parser.add_argument('--fei', type=str, default=None,
                        help='file with EI connections')
    parser.add_argument('--fie', type=str, default=None,
                        help='file with IE connections')
    parser.add_argument('--fii', type=str, default=None,
                        help='file with II connections')
    parser.add_argument('--seed', type=int, default=None,
                        help=f'seed for connectivity and initial state (default {DEFAULT_SEED})')
    parser.add_argument('--timefile', type=str, default=None,
                        help=f'wall-clock timing file in fast mode (default {DEFAULT_TIMEFILE})')
    parser.add_argument('--plot', action='store_true',
                        help='write a raster plot after a recorded run')
    parser.add_argument('--verbose', action='store_true',
                        help='debug logging')
    return parser


def build_parser():
    parser = BenchmarkArgumentParser(
        description='COBA benchmark (Vogels & Abbott network)', add_help=False)
    return add_benchmark_arguments(parser)


def options_from_args(args):
    """Map parsed arguments to :func:`benchmark.config.resolve_config` options."""
    return {
        'simtime': args.simtime,
        'networkscale': args.networkscale,
        'save': args.save,
        'num_timesteps_delay': args.num_timesteps_delay,
        'fast': args.fast,
        'dir': args.dir,
        'fee': args.fee,
        'fei': args.fei,
        'fie': args.fie,
        'fii': args.fii,
        'seed': args.seed,
        'timefile': args.timefile,
        'plot': args.plot,
    }


def setup_logging(fast=False, verbose=False, rank=0):
    if verbose:
        level = logging.DEBUG
    elif fast:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format=f"%(asctime)s rank {rank} %(levelname)s %(name)s: %(message)s",
        force=True)


def print_banner(options, ranks=1):
    print("=" * 60)
    print("COBA benchmark")
    print("=" * 60)
    print(f"Simulated time: {options['simtime'] or DEFAULT_SIMTIME} s")
    print(f"Network scale:  {options['networkscale'] or DEFAULT_NETWORKSCALE}")
    print(f"Fast mode:      {bool(options['fast'])}")
    print(f"Processes:      {ranks}")
    print("=" * 60)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.help:
        parser.print_help()
        return 1

    setup_logging(fast=args.fast, verbose=args.verbose)
    options = options_from_args(args)
    if not args.fast:
        print_banner(options)

    try:
        result = BenchmarkRunner(options).run()
    except BenchmarkError as exc:
        logger.error("error: %s", exc)
        return 1
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())
