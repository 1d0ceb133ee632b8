import logging
import shlex
import subprocess  # nosec B404 - hyperfine is run through sh
import sys
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

import psutil

from ..config import DEFAULT_DATA_DIR, DRIVER_RECIPE, normalize_data_dir
from ..errors import RunnerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverRun:
    command: str
    returncode: int
    stdout: str
    stderr: str
    artifact_path: Path
    elapsed_s: float


def build_driver_command(
    revision: str,
    *,
    data_dir: str = DEFAULT_DATA_DIR,
    recipe: Mapping[str, Any] = DRIVER_RECIPE,
) -> str:
    """Render the hyperfine command line for ``revision``.

    With the default data directory the result is exactly::

        hyperfine --parameter-list commit <rev> --setup '...' --prepare
        'sync && rm -Rf /mnt/bench/.bitcoin/*' --cleanup '' --runs 1
        --show-output --export-json results.json './build/src/bitcoind ...'

    The data directory is shell-quoted inside the recipe strings, so a path
    with spaces stays one argument to `rm` and to bitcoind.

    Raises:
        ValueError: If ``data_dir`` is relative or the filesystem root.
    """
    q = shlex.quote
    fill = {"data_dir": q(normalize_data_dir(data_dir))}
    parts = [
        recipe["driver"],
        "--parameter-list",
        recipe["parameter_name"],
        q(revision),
        "--setup",
        q(recipe["setup"].format(**fill)),
        "--prepare",
        q(recipe["prepare"].format(**fill)),
        "--cleanup",
        q(recipe["cleanup"].format(**fill)),
        "--runs",
        str(recipe["runs"]),
        "--show-output",
        "--export-json",
        q(recipe["export_json"]),
        q(recipe["command"].format(**fill)),
    ]
    return " ".join(parts)


def kill_process_tree(pid: int) -> None:
    """Kill sh, hyperfine and whatever build or bitcoind it has spawned."""
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.Error:
        return

    logger.warning("Killing benchmark process %d and %d descendant(s)", pid, len(children))
    for child in children:
        try:
            child.kill()
        except psutil.Error:
            pass
    try:
        parent.kill()
    except psutil.Error:
        pass


def _pump(stream: IO[str], sink: IO[str] | None, chunks: list[str]) -> None:
    # Tee one child stream: keep a copy and forward it live.
    try:
        for line in iter(stream.readline, ""):
            chunks.append(line)
            if sink is not None:
                sink.write(line)
                sink.flush()
    finally:
        stream.close()


def run_benchmark(
    revision: str,
    repo_path: Path | str,
    *,
    data_dir: str = DEFAULT_DATA_DIR,
    timeout: float | None = None,
    show_output: bool = True,
) -> DriverRun:
    """Build and time ``revision`` with hyperfine inside ``repo_path``.

    hyperfine's output is streamed to our stdout/stderr as it is produced
    (when ``show_output`` is set) and captured for error reporting. The JSON
    export lands in ``repo_path``.

    Raises:
        RunnerError: If ``data_dir`` is rejected, a stale export cannot be
            removed, sh cannot be started, hyperfine exits non-zero, or the
            optional ``timeout`` expires.
    """
    repo_path = Path(repo_path)
    try:
        command = build_driver_command(revision, data_dir=data_dir)
    except ValueError as exc:
        raise RunnerError(
            command=DRIVER_RECIPE["driver"],
            returncode=None,
            reason=f"Invalid hyperfine data directory: {exc}",
        ) from exc
    artifact_path = repo_path / DRIVER_RECIPE["export_json"]

    # A stale export from an earlier run must never be ingested for this one
    try:
        artifact_path.unlink(missing_ok=True)
    except OSError as exc:
        raise RunnerError(
            command=command,
            returncode=None,
            reason=f"Failed to remove stale results file {artifact_path}: {exc}",
        ) from exc

    logger.info("Running hyperfine for %s in %s", revision, repo_path)
    logger.debug("Driver command: %s", command)
    start = time.perf_counter()
    try:
        process = subprocess.Popen(  # nosec B603 B607 - fixed recipe
            ["sh", "-c", command],
            cwd=repo_path,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as exc:
        raise RunnerError(
            command=command,
            returncode=None,
            reason=f"Failed to execute hyperfine command: {exc}",
        ) from exc

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    pumps = [
        threading.Thread(
            target=_pump,
            args=(process.stdout, sys.stdout if show_output else None, stdout_chunks),
            name="hyperfine-stdout",
            daemon=True,
        ),
        threading.Thread(
            target=_pump,
            args=(process.stderr, sys.stderr if show_output else None, stderr_chunks),
            name="hyperfine-stderr",
            daemon=True,
        ),
    ]
    for pump in pumps:
        pump.start()

    timed_out = False
    try:
        returncode = process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        kill_process_tree(process.pid)
        returncode = process.wait()
    except BaseException:
        kill_process_tree(process.pid)
        process.wait()
        raise
    finally:
        for pump in pumps:
            pump.join()

    elapsed = time.perf_counter() - start
    stdout = "".join(stdout_chunks)
    stderr = "".join(stderr_chunks)

    if timed_out:
        raise RunnerError(
            command=command,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            reason=f"hyperfine command timed out after {timeout}s",
        )
    if returncode != 0:
        raise RunnerError(command=command, returncode=returncode, stdout=stdout, stderr=stderr)

    logger.info("hyperfine finished for %s in %.1fs", revision, elapsed)
    return DriverRun(
        command=command,
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
        artifact_path=artifact_path,
        elapsed_s=elapsed,
    )


__all__ = ["DriverRun", "build_driver_command", "kill_process_tree", "run_benchmark"]
