#!/usr/bin/env python3
# run_fabric.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Command-line interface: simulate a scenario, check properties, save the trace

import sys
import argparse
from pathlib import Path
from typing import Dict, List

from fabric import FabricError, Termination, TickSnapshot, Trace, run
from fabric.scenarios import SCENARIOS, build_scenario
from propspec import ParseError
from utils.logger import LogLevel, get_logger
from utils.trace_io import TraceFormatError, write_trace
from verification import (
    CORE_PROPERTIES,
    PropertyChecker,
    UnknownProperty,
    Verdict,
    VerdictStatus,
    check_all,
    resolve_property,
)


def configure_logging_for_run(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging levels for a simulation run.

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging (overrides verbose)
    """
    logger = get_logger()

    if debug:
        logger.set_level(LogLevel.DEBUG)
    elif verbose:
        logger.set_level(LogLevel.INFO)
    else:
        # verdicts are reported at INFO
        logger.set_level(LogLevel.INFO)


def report_tick(trace: Trace, snapshot: TickSnapshot) -> None:
    """Trace listener that prints a one-line summary of each committed tick."""
    activity = []
    for node_id, node in snapshot.nodes.items():
        actions = [f"read {atom}" for atom in sorted(node.read)]
        actions += [f"sent {atom}" for atom in sorted(node.sent)]
        if actions:
            activity.append(f"{node_id} " + ", ".join(actions))

    summary = "; ".join(activity) if activity else "idle"
    get_logger().info(
        f"  ⏱️  tick {snapshot.tick}: {summary} ({snapshot.available_after} atoms left)"
    )


def validate_properties(properties: List[str]) -> None:
    """Fail fast on malformed formulas or unknown property names.

    Raises:
        ParseError: A formula does not parse
        UnknownProperty: A name is not registered
    """
    for prop in properties:
        resolve_property(prop)


def scenario_options(args: argparse.Namespace) -> dict:
    """Scenario builder keyword arguments derived from the command line."""
    options = {"parallel": args.parallel}
    if args.scenario == "random":
        options.update(
            nodes=args.nodes,
            sends_per_node=args.sends,
            pool_size=args.pool_size,
            seed=args.seed,
        )
    return options


def print_verdicts(verdicts: Dict[str, Verdict]) -> None:
    """Print one line per verdict, with witness or open obligations."""
    logger = get_logger()
    icons = {
        VerdictStatus.HOLDS: "✅",
        VerdictStatus.VIOLATED: "❌",
        VerdictStatus.UNPROVEN: "❓",
    }

    logger.info("\n📋 Verdicts:")
    for label, verdict in verdicts.items():
        logger.info(f"  {icons[verdict.status]} {verdict}")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser for command line interface.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Nuntius message fabric simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_fabric.py -s single_delivery
  python run_fabric.py -s out_of_order -p ReadInOrder
  python run_fabric.py -s random --nodes 4 --sends 5 --seed 7 --ticks 30 --save trace.csv
  python run_fabric.py -s random --pool-size 3 -p "NoMessageShortage & NoLostMessages" --stop-on-violation

Scenarios:
  """ + ", ".join(sorted(SCENARIOS)),
    )

    parser.add_argument(
        "-s", "--scenario", required=True, choices=sorted(SCENARIOS), help="Scenario to simulate"
    )

    parser.add_argument(
        "-n", "--ticks", type=int, default=None, help="Simulation horizon (default: scenario's own)"
    )

    parser.add_argument(
        "-p",
        "--property",
        action="append",
        dest="properties",
        default=None,
        help="Property name or formula to check (repeatable; default: core properties)",
    )

    parser.add_argument("--save", type=Path, default=None, help="Write the trace to this CSV file")

    parser.add_argument(
        "--stop-on-violation",
        action="store_true",
        help="Stop the simulation at the first property violation",
    )

    parser.add_argument(
        "--parallel", action="store_true", help="Evaluate node decisions on a thread pool"
    )

    parser.add_argument("--nodes", type=int, default=3, help="Node count (random scenario)")
    parser.add_argument("--sends", type=int, default=3, help="Sends per node (random scenario)")
    parser.add_argument("--pool-size", type=int, default=None, help="Pool size (random scenario)")
    parser.add_argument("--seed", type=int, default=0, help="Random seed (random scenario)")

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Print a summary line for every tick"
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output (overrides --verbose)"
    )

    return parser


def main(argv: List[str] = None) -> int:
    """Main entry point for the simulator.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    configure_logging_for_run(verbose=args.verbose, debug=args.debug)
    logger = get_logger()

    try:
        properties = args.properties or list(CORE_PROPERTIES)
        validate_properties(properties)

        fabric, horizon = build_scenario(args.scenario, **scenario_options(args))
        if args.ticks is not None:
            horizon = args.ticks

        logger.info(f"🚀 Simulating {args.scenario} for up to {horizon} ticks")

        if args.verbose:
            fabric.recorder.subscribe(report_tick)

        checker = PropertyChecker(properties) if args.stop_on_violation else None
        trace = run(fabric, horizon, checker=checker, stop_on_violation=args.stop_on_violation)

        logger.info(f"📊 Ticks recorded: {len(trace)}, atoms left: {trace.final_available}")
        logger.info(f"🏁 Termination: {trace.describe_termination()}")

        verdicts = check_all(trace, properties)
        print_verdicts(verdicts)

        if args.save is not None:
            write_trace(trace, str(args.save))
            logger.info(f"💾 Trace written to {args.save}")

        if trace.termination is Termination.ERROR:
            return 6
        return 0

    except ParseError as e:
        logger.error(f"Formula parsing error: {e}")
        return 2

    except UnknownProperty as e:
        logger.error(str(e))
        return 2

    except TraceFormatError as e:
        logger.error(f"Trace file error: {e}")
        return 1

    except FabricError as e:
        logger.error(f"Fabric configuration error: {e.describe()}")
        return 3

    except (KeyError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 3

    except KeyboardInterrupt:
        logger.error("Simulation interrupted by user")
        return 4

    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        import traceback

        traceback.print_exc()
        return 5


if __name__ == "__main__":
    sys.exit(main())
