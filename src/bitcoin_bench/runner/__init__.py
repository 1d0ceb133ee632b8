"""hyperfine execution and result decoding.

Modules:
    - driver: run_benchmark, build_driver_command
    - results: MeasurementRecord, parse_results
"""

from .driver import DriverRun, build_driver_command, run_benchmark
from .results import MeasurementRecord, parse_results, parse_results_text

__all__ = [
    "DriverRun",
    "MeasurementRecord",
    "build_driver_command",
    "parse_results",
    "parse_results_text",
    "run_benchmark",
]
