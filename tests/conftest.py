import json
import os
import stat
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from bitcoin_bench.config import BenchConfig

_FAKE_HYPERFINE = """#!/bin/sh
printf '%s\\n' "$@" > "$FAKE_HYPERFINE_ARGS"
echo "fake hyperfine: building"
echo "fake hyperfine: warming up" >&2
if [ -n "$FAKE_HYPERFINE_RESULTS" ]; then
    cp "$FAKE_HYPERFINE_RESULTS" results.json
fi
exit "${FAKE_HYPERFINE_EXIT:-0}"
"""


def make_result(**overrides: Any) -> dict[str, Any]:
    result: dict[str, Any] = {
        "command": "./build/src/bitcoind -datadir=/mnt/bench/.bitcoin -stopatheight=100000",
        "mean": 120.5,
        "stddev": 1.2,
        "median": 120.4,
        "user": 90.0,
        "system": 5.0,
        "min": 119.0,
        "max": 122.0,
        "times": [120.5],
        "exit_codes": [0],
        "parameters": {"commit": "abc123"},
    }
    result.update(overrides)
    return result


def write_artifact(path: Path, *results: dict[str, Any]) -> Path:
    path.write_text(json.dumps({"results": list(results)}), encoding="utf-8")
    return path


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    repo = tmp_path / "bitcoin"
    repo.mkdir()
    return repo


@pytest.fixture
def bench_config(tmp_path: Path, repo_dir: Path) -> BenchConfig:
    return BenchConfig(
        repo_path=str(repo_dir),
        db_path=str(tmp_path / "results.db"),
        data_dir=str(tmp_path / "datadir"),
        show_output=False,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in list(os.environ):
        if var.startswith("BENCH_"):
            monkeypatch.delenv(var, raising=False)


class FakeHyperfine:
    """Controls the stub ``hyperfine`` placed first on PATH."""

    def __init__(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        self.root = root
        self.args_file = root / "hyperfine.args"
        self._monkeypatch = monkeypatch
        monkeypatch.setenv("FAKE_HYPERFINE_ARGS", str(self.args_file))
        monkeypatch.delenv("FAKE_HYPERFINE_RESULTS", raising=False)
        monkeypatch.delenv("FAKE_HYPERFINE_EXIT", raising=False)

    def writes(self, document: dict[str, Any] | str) -> None:
        payload = self.root / "artifact.json"
        text = document if isinstance(document, str) else json.dumps(document)
        payload.write_text(text, encoding="utf-8")
        self._monkeypatch.setenv("FAKE_HYPERFINE_RESULTS", str(payload))

    def exits_with(self, code: int) -> None:
        self._monkeypatch.setenv("FAKE_HYPERFINE_EXIT", str(code))

    @property
    def argv(self) -> list[str]:
        return self.args_file.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def fake_hyperfine(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[FakeHyperfine, None, None]:
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "hyperfine"
    script.write_text(_FAKE_HYPERFINE, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    yield FakeHyperfine(tmp_path, monkeypatch)
