# utils/__init__.py
# This file is part of Nuntius - A Message Fabric Simulator
#
# Utility module exports

from .trace_io import (
    read_trace,
    write_trace,
    validate_trace_file,
    get_trace_nodes,
    TraceFormatError,
)

__all__ = [
    "read_trace",
    "write_trace",
    "validate_trace_file",
    "get_trace_nodes",
    "TraceFormatError",
]
