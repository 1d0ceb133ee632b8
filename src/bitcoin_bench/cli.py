import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import NoReturn

import click
from dotenv import load_dotenv

from . import __version__
from .config import BenchConfig, normalize_data_dir
from .errors import BenchError
from .logging import configure_logging, resolve_log_file
from .pipeline import BenchmarkPipeline
from .schedule import CronSchedule
from .scheduler import Scheduler
from .store import ResultStore

logger = logging.getLogger(__name__)


def _load_env() -> None:
    dotenv_path = os.getenv("BENCH_DOTENV_PATH", "").strip()
    if not dotenv_path:
        load_dotenv()
        return
    path = Path(dotenv_path).expanduser()
    if path.exists():
        load_dotenv(path)
    else:
        click.echo(f"Warning: BENCH_DOTENV_PATH does not exist: {dotenv_path}", err=True)
        load_dotenv()  # Fallback to default search


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--repo-path", default=None, help="Bitcoin Core checkout [env: BENCH_REPO_PATH]")
@click.option("--db-path", default=None, help="SQLite results database [env: BENCH_DB_PATH]")
@click.option(
    "--data-dir",
    default=None,
    help="Scratch datadir wiped before every run [env: BENCH_DATA_DIR]",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level [env: BENCH_LOG_LEVEL, default: INFO]",
)
@click.version_option(__version__, prog_name="bitcoin-bench")
@click.pass_context
def main(
    ctx: click.Context,
    repo_path: str | None,
    db_path: str | None,
    data_dir: str | None,
    log_level: str | None,
) -> None:
    """Benchmark Bitcoin Core builds with hyperfine and record the results."""
    _load_env()
    configure_logging(
        log_level or os.getenv("BENCH_LOG_LEVEL", "INFO"),
        log_file=resolve_log_file(),
    )

    if ctx.invoked_subcommand is None:
        click.echo("Please specify a command. Use --help for more information.")
        return

    try:
        config = BenchConfig.from_env()
    except RuntimeError as exc:
        _fail(f"loading config: {exc}")
    if data_dir:
        try:
            data_dir = normalize_data_dir(data_dir)
        except ValueError as exc:
            _fail(f"--data-dir: {exc}")

    overrides = {
        key: value
        for key, value in (
            ("repo_path", repo_path),
            ("db_path", db_path),
            ("data_dir", data_dir),
        )
        if value
    }
    ctx.obj = replace(config, **overrides)


def _check_database(config: BenchConfig) -> None:
    with ResultStore(config.db_path) as store:
        store.ensure_schema()


@main.command()
@click.option(
    "--schedule",
    "expression",
    default=None,
    help="7-field cron expression in UTC [env: BENCH_SCHEDULE, default: daily at 00:00:00]",
)
@click.option(
    "--revision",
    default=None,
    help="Revision to benchmark on each fire [env: BENCH_DEFAULT_REVISION, default: master]",
)
@click.pass_obj
def daemon(config: BenchConfig, expression: str | None, revision: str | None) -> None:
    """Run the application as a daemon."""
    try:
        schedule = CronSchedule.parse(expression or config.schedule)
        _check_database(config)
    except BenchError as exc:
        _fail(str(exc))

    pipeline = BenchmarkPipeline(config)
    scheduler = Scheduler(
        schedule,
        pipeline.run,
        revision=revision or config.default_revision,
    )
    logger.info(
        "Starting daemon (schedule=%r, repo=%s, db=%s)",
        schedule.expression,
        config.repo_path,
        config.db_path,
    )
    try:
        asyncio.run(scheduler.daemon())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        pipeline.close(wait=False)


@main.command()
@click.option("--commit", "-c", required=True, help="The commit hash to benchmark")
@click.pass_obj
def run(config: BenchConfig, commit: str) -> None:
    """Run benchmark for a specific commit."""
    pipeline = BenchmarkPipeline(config)
    try:
        result = asyncio.run(pipeline.run(commit))
    except BenchError as exc:
        _fail(str(exc))
    finally:
        pipeline.close()

    click.echo(
        f"Stored {result.rows_inserted} result(s) for {commit} in {config.db_path} "
        f"({result.elapsed_s:.1f}s)"
    )


if __name__ == "__main__":
    main()
