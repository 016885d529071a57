from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from typing import Sequence

from . import evaluation, workload
from .errors import SchedulerError
from .evaluation import PolicyFactory
from .process import ProcessSpec
from .schedulers import SCHEDULERS, create_scheduler
from .simulator import SimulationConfig

logger = logging.getLogger("tick_scheduler")


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate CPU scheduling policies tick by tick.")
    parser.add_argument(
        "--policy",
        choices=[*SCHEDULERS, "all"],
        default="all",
        help="Scheduling policy to simulate (default: every policy).",
    )
    parser.add_argument("--quantum", type=int, default=1, help="Round-Robin time quantum in ticks.")
    parser.add_argument("--workload", type=str, default=None, help="Workload file; a random workload is generated when omitted.")
    parser.add_argument("--processes", type=int, default=16, help="Number of random processes to generate.")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for workload generation.")
    parser.add_argument("--max-arrival", type=int, default=20, help="Latest arrival tick of a random process.")
    parser.add_argument("--max-lifespan", type=int, default=10, help="Longest lifespan of a random process.")
    parser.add_argument("--resources", type=int, default=4, help="Number of resources random processes may request.")
    parser.add_argument(
        "--request-probability",
        type=float,
        default=0.3,
        help="Probability that a random process requests a resource.",
    )
    parser.add_argument("--save-workload", type=str, default=None, help="Write the simulated workload to this file.")
    parser.add_argument("--max-ticks", type=int, default=100_000, help="Abort simulations running longer than this.")
    parser.add_argument("--timeline", action="store_true", help="Print the run segments of each policy.")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only print the summary table.")
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log every decision and dump status each tick.")
    args = parser.parse_args(argv)
    if args.quantum < 1:
        parser.error("--quantum must be at least 1")
    if args.max_lifespan < 1:
        parser.error("--max-lifespan must be at least 1")
    return args


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.quiet:
        level = logging.WARNING
    elif args.verbose:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def build_workload(args: argparse.Namespace) -> list[ProcessSpec]:
    if args.workload is not None:
        specs = workload.load_workload(args.workload)
        logger.info("loaded %d processes from %s", len(specs), args.workload)
        return specs
    return workload.random_workload(
        args.processes,
        seed=args.seed,
        max_arrival=args.max_arrival,
        lifespan_range=(1, args.max_lifespan),
        nr_resources=args.resources,
        request_probability=args.request_probability,
    )


def build_factories(args: argparse.Namespace) -> list[tuple[str, PolicyFactory]]:
    keys = list(SCHEDULERS) if args.policy == "all" else [args.policy]
    factories: list[tuple[str, PolicyFactory]] = []
    for key in keys:
        options = {"quantum": args.quantum} if key == "rr" else {}
        factories.append((key.upper(), partial(create_scheduler, key, **options)))
    return factories


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_arguments(argv)
    configure_logging(args)

    try:
        specs = build_workload(args)
    except (OSError, workload.WorkloadFormatError) as exc:
        logger.error("cannot load workload: %s", exc)
        return 2
    if args.save_workload is not None:
        with open(args.save_workload, "w", encoding="utf-8") as handle:
            handle.write(workload.format_workload(specs))

    config = SimulationConfig(
        nr_resources=max(32, args.resources),
        max_ticks=args.max_ticks,
        dump_status=args.verbose,
    )
    try:
        outcomes = evaluation.evaluate_suite(build_factories(args), specs, config=config)
    except SchedulerError as exc:
        logger.error("simulation aborted: %s", exc)
        return 1

    print(f"Simulated {len(specs)} processes\n")
    header_fmt = "{:<6} {:>8} {:>9} {:>9} {:>9} {:>8} {:>8} {:>10} {:>9}"
    row_fmt = "{:<6} {:>8d} {:>9.2f} {:>9.2f} {:>9.2f} {:>8.2f} {:>8d} {:>10.3f} {:>9d}"
    print(header_fmt.format("Policy", "Ticks", "MeanTurn", "MeanWait", "MeanResp", "p90Wait", "MaxWait", "Throughput", "Switches"))
    for outcome in outcomes:
        m = outcome.aggregate
        print(
            row_fmt.format(
                outcome.name,
                outcome.simulation.total_ticks,
                m.mean_turnaround,
                m.mean_wait,
                m.mean_response,
                m.p90_wait,
                m.max_wait,
                m.throughput,
                m.context_switches,
            ),
        )

    if args.timeline:
        for outcome in outcomes:
            segments = " ".join(f"{s.pid}@{s.start}x{s.length}" for s in outcome.simulation.segments())
            print(f"\n{outcome.name} {outcome.policy}: {segments}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
