import logging
import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_state_dir

from .env import env_bool, env_float, env_str

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_DB_PATH",
    "DEFAULT_REPO_PATH",
    "DEFAULT_REVISION",
    "DEFAULT_SCHEDULE",
    "LOG_PATH",
    "RESULTS_FILENAME",
    "BenchConfig",
    "normalize_data_dir",
]

# Checkout that git moves between revisions and hyperfine builds in
DEFAULT_REPO_PATH = "/home/will/src/bitcoin"
DEFAULT_DB_PATH = "/home/will/src/bitcoin_benchmark/results.db"
# Scratch datadir for bitcoind; wiped before every sample
DEFAULT_DATA_DIR = "/mnt/bench/.bitcoin"

# hyperfine --export-json target, relative to the checkout
RESULTS_FILENAME = "results.json"

# sec min hour day-of-month month day-of-week year (UTC): daily at midnight
DEFAULT_SCHEDULE = "0 0 0 * * * *"
DEFAULT_REVISION = "master"

# Logging - Cross-platform state directory:
# - Linux: ~/.local/state/bitcoin-bench
# - macOS: ~/Library/Application Support/bitcoin-bench
# Note: Directory is created lazily when file logging is enabled
LOG_DIR = Path(user_state_dir("bitcoin-bench", appauthor=False))
LOG_PATH = LOG_DIR / "bench.log"
MAX_LOG_SIZE_BYTES = 10 * 1024 * 1024
MAX_ROTATED_LOGS = 5


def normalize_data_dir(raw: str) -> str:
    """Strip trailing slashes and dot segments; the datadir is wiped with `rm -Rf <dir>/*`.

    Raises:
        ValueError: If the path is relative or resolves to the filesystem root.
    """
    raw = raw.strip()
    data_dir = os.path.normpath(raw).rstrip("/") if raw else ""
    if not data_dir:
        raise ValueError(f"data directory must not be the filesystem root, got {raw!r}")
    if not Path(data_dir).is_absolute():
        raise ValueError(f"data directory must be an absolute path, got {raw!r}")
    return data_dir


@dataclass(frozen=True)
class BenchConfig:
    repo_path: str = DEFAULT_REPO_PATH
    db_path: str = DEFAULT_DB_PATH
    data_dir: str = DEFAULT_DATA_DIR
    schedule: str = DEFAULT_SCHEDULE
    default_revision: str = DEFAULT_REVISION
    run_timeout: float | None = None  # Coarse wall-clock guard for hyperfine; None disables
    show_output: bool = True  # Stream hyperfine output live while capturing it

    @property
    def results_path(self) -> Path:
        return Path(self.repo_path) / RESULTS_FILENAME

    @classmethod
    def from_env(cls) -> "BenchConfig":
        repo_path = env_str("BENCH_REPO_PATH", DEFAULT_REPO_PATH)
        db_path = env_str("BENCH_DB_PATH", DEFAULT_DB_PATH)
        try:
            data_dir = normalize_data_dir(env_str("BENCH_DATA_DIR", DEFAULT_DATA_DIR))
        except ValueError as exc:
            raise RuntimeError(f"BENCH_DATA_DIR: {exc}") from None
        schedule = env_str("BENCH_SCHEDULE", DEFAULT_SCHEDULE)
        default_revision = env_str("BENCH_DEFAULT_REVISION", DEFAULT_REVISION)
        run_timeout = env_float("BENCH_RUN_TIMEOUT")
        show_output = env_bool("BENCH_SHOW_OUTPUT", default=True)

        logger.debug(
            "Loaded config: repo=%s db=%s data_dir=%s schedule=%r",
            repo_path,
            db_path,
            data_dir,
            schedule,
        )
        return cls(
            repo_path=repo_path,
            db_path=db_path,
            data_dir=data_dir,
            schedule=schedule,
            default_revision=default_revision,
            run_timeout=run_timeout,
            show_output=show_output,
        )
