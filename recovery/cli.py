"""Command-line entry point.

    $ recovery                                 # defaults: ./results, all cores, 5 min batches
    $ recovery --output data --workers 4 --interval 60 --rounds 10
    $ python -m recovery --parallelism process
"""

import argparse
import logging
import sys

from recovery import __version__
from recovery.config import GeneratorConfig
from recovery.engine.base import EngineError
from recovery.simulation.pool import WorkerError, WorkerPool

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="recovery",
        description="Generate attitude-recovery training data.",
    )
    parser.add_argument("--output", default="results",
                        help="Output directory for result files (default: results)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Number of simulation workers (default: one per CPU)")
    parser.add_argument("--interval", type=float, default=300.0,
                        help="Wall-clock seconds per worker batch (default: 300)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Root random seed (default: OS entropy)")
    parser.add_argument("--rounds", type=int, default=None,
                        help="Stop after writing this many files (default: run forever)")
    parser.add_argument("--parallelism", choices=["thread", "process"], default="thread",
                        help="Run workers as threads or processes (default: thread)")
    parser.add_argument("--channel-capacity", type=int, default=None,
                        help="Batches buffered before workers block (default: 2 per worker, 0 = unbounded)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the generator.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        config = GeneratorConfig(
            output_dir=args.output,
            workers=args.workers,
            interval=args.interval,
            seed=args.seed,
            parallelism=args.parallelism,
            channel_capacity=args.channel_capacity,
        )
    except ValueError as exc:
        log.error("Invalid configuration: %s", exc)
        return 2

    try:
        written = WorkerPool(config).run(rounds=args.rounds)
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130
    except (WorkerError, EngineError, OSError) as exc:
        log.error("Fatal: %s", exc)
        return 1

    log.info("Wrote %d files to %s", written, config.output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
