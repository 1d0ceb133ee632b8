import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from .config import BenchConfig
from .errors import OrchestratorError
from .runner.driver import run_benchmark
from .runner.results import parse_results
from .store import ResultStore, effective_commit
from .workspace import prepare_workspace

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    revision: str
    row_ids: list[int] = field(default_factory=list)
    elapsed_s: float = 0.0

    @property
    def rows_inserted(self) -> int:
        return len(self.row_ids)


class BenchmarkPipeline:
    """Workspace -> hyperfine -> parse -> store, for one revision at a time.

    ``run`` moves the blocking body onto a dedicated single worker thread so
    the event loop driving the scheduler stays responsive for the hours a
    build and sync can take.
    """

    def __init__(self, config: BenchConfig) -> None:
        self.config = config
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="bench-pipeline")

    def execute(self, revision: str) -> PipelineResult:
        """Run the pipeline synchronously; the first failing step's error propagates."""
        config = self.config
        start = time.perf_counter()
        result = PipelineResult(revision=revision)

        repo_path = prepare_workspace(revision, config.repo_path)
        run = run_benchmark(
            revision,
            repo_path,
            data_dir=config.data_dir,
            timeout=config.run_timeout,
            show_output=config.show_output,
        )
        records = parse_results(run.artifact_path)
        logger.info("Parsed %d result(s) for %s", len(records), revision)

        # No transaction spans records: rows stored before a failure are kept
        with ResultStore(config.db_path) as store:
            store.ensure_schema()
            for record in records:
                row_id = store.append(effective_commit(record, revision), record)
                result.row_ids.append(row_id)

        result.elapsed_s = time.perf_counter() - start
        logger.info(
            "Pipeline for %s stored %d row(s) in %.1fs",
            revision,
            result.rows_inserted,
            result.elapsed_s,
        )
        return result

    async def run(self, revision: str) -> PipelineResult:
        """Run ``execute`` on the pipeline worker.

        Raises:
            OrchestratorError: Wrapping whatever the pipeline raised.
        """
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self.execute, revision)
        except Exception as exc:
            raise OrchestratorError(revision, exc) from exc

    def close(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)


__all__ = ["BenchmarkPipeline", "PipelineResult"]
