#!/usr/bin/env python3
# scripts/check_trace.py
# This file is part of Nuntius - A Message Fabric Simulator

"""
Command-line tool to check properties over a saved fabric trace.

Reads a CSV trace written by run_fabric.py (or by hand), evaluates the
requested properties or formulas and exits with status 0 when none of them
is violated, 1 when at least one is.
"""

import sys
import argparse
from pathlib import Path

from propspec import ParseError
from utils.logger import configure_logging, get_logger
from utils.trace_io import TraceFormatError, read_trace
from verification import CORE_PROPERTIES, PROPERTIES, UnknownProperty, check_all


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Check trace properties over a saved fabric trace"
    )
    parser.add_argument(
        "-t", "--trace",
        type=Path,
        required=True,
        help="Path to the CSV trace file"
    )
    parser.add_argument(
        "-p", "--property",
        action="append",
        dest="properties",
        default=None,
        help="Property name or formula (repeatable; default: core properties)"
    )
    parser.add_argument(
        "--all",
        action="store_true",
        dest="all_properties",
        help="Check every registered property, including structural invariants"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print per-tick checking logs"
    )
    args = parser.parse_args(argv)

    configure_logging(verbose=True, debug=args.verbose)
    logger = get_logger()

    if args.all_properties:
        properties = sorted(PROPERTIES)
    else:
        properties = args.properties or list(CORE_PROPERTIES)

    try:
        trace = read_trace(str(args.trace))
        logger.info(
            f"Loaded {len(trace)} ticks for nodes {', '.join(trace.nodes)} "
            f"({trace.describe_termination()})"
        )
        verdicts = check_all(trace, properties)
    except TraceFormatError as e:
        sys.exit(f"ERROR: bad trace format: {e}")
    except (ParseError, UnknownProperty) as e:
        sys.exit(f"ERROR: failed to parse property: {e}")

    violated = [label for label, verdict in verdicts.items() if verdict.is_violated]
    return 1 if violated else 0


if __name__ == "__main__":
    sys.exit(main())
