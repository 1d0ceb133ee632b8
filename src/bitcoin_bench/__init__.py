__version__ = "0.1.0.dev0"

from .config import BenchConfig
from .errors import (
    BenchError,
    OrchestratorError,
    ParseError,
    RunnerError,
    ScheduleError,
    StoreError,
    WorkspaceError,
)
from .pipeline import BenchmarkPipeline, PipelineResult
from .runner import MeasurementRecord, parse_results, run_benchmark
from .schedule import CronSchedule
from .scheduler import Scheduler
from .store import ResultStore
from .workspace import prepare_workspace

__all__ = [
    "__version__",
    "BenchConfig",
    "BenchError",
    "BenchmarkPipeline",
    "CronSchedule",
    "MeasurementRecord",
    "OrchestratorError",
    "ParseError",
    "PipelineResult",
    "ResultStore",
    "RunnerError",
    "ScheduleError",
    "Scheduler",
    "StoreError",
    "WorkspaceError",
    "parse_results",
    "prepare_workspace",
    "run_benchmark",
]
