import shlex
import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import psutil
import pytest
from conftest import FakeHyperfine, make_result

from bitcoin_bench.errors import RunnerError
from bitcoin_bench.runner.driver import build_driver_command, kill_process_tree, run_benchmark

requires_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="sh not available")

EXPECTED_COMMAND = (
    "hyperfine --parameter-list commit abc123 "
    "--setup 'rm -Rf build && git checkout {commit} && cmake -B build && "
    "cmake --build build -j$(nproc)' "
    "--prepare 'sync && rm -Rf /mnt/bench/.bitcoin/*' "
    "--cleanup '' "
    "--runs 1 "
    "--show-output "
    "--export-json results.json "
    "'./build/src/bitcoind -datadir=/mnt/bench/.bitcoin -connect=127.0.0.1:8333 "
    "-port=8444 -rpcport=8445 -dbcache=16385 -printtoconsole=0 -stopatheight=100000'"
)


class TestBuildDriverCommand:
    def test_default_recipe_is_exact(self) -> None:
        assert build_driver_command("abc123") == EXPECTED_COMMAND

    def test_branch_label_is_unquoted(self) -> None:
        command = build_driver_command("master")
        assert command.startswith("hyperfine --parameter-list commit master --setup ")

    def test_revision_with_shell_metacharacters_is_quoted(self) -> None:
        command = build_driver_command("x; rm -rf /")
        assert "--parameter-list commit 'x; rm -rf /' --setup" in command

    def test_custom_data_dir(self) -> None:
        command = build_driver_command("abc123", data_dir="/tmp/bench/")
        assert "--prepare 'sync && rm -Rf /tmp/bench/*'" in command
        assert "-datadir=/tmp/bench " in command

    def test_data_dir_with_space_stays_one_argument(self) -> None:
        argv = shlex.split(build_driver_command("abc123", data_dir="/mnt/my bench"))

        prepare = argv[argv.index("--prepare") + 1]
        assert shlex.split(prepare.split("&&")[1]) == ["rm", "-Rf", "/mnt/my bench/*"]
        bitcoind = shlex.split(argv[-1])
        assert "-datadir=/mnt/my bench" in bitcoind

    @pytest.mark.parametrize("data_dir", ["/", "//", "/mnt/..", "relative/dir"])
    def test_unsafe_data_dir_is_rejected(self, data_dir: str) -> None:
        with pytest.raises(ValueError, match="data directory"):
            build_driver_command("abc123", data_dir=data_dir)



class TestKillProcessTree:
    def test_kills_descendants_then_parent(self, caplog: pytest.LogCaptureFixture) -> None:
        parent = MagicMock()
        build, bitcoind = MagicMock(), MagicMock()
        parent.children.return_value = [build, bitcoind]

        with patch("bitcoin_bench.runner.driver.psutil.Process", return_value=parent):
            with caplog.at_level("WARNING"):
                kill_process_tree(4242)

        build.kill.assert_called_once_with()
        bitcoind.kill.assert_called_once_with()
        parent.kill.assert_called_once_with()
        assert "Killing benchmark process 4242 and 2 descendant(s)" in caplog.text

    def test_vanished_process_is_ignored(self) -> None:
        with patch(
            "bitcoin_bench.runner.driver.psutil.Process",
            side_effect=psutil.NoSuchProcess(4242),
        ):
            kill_process_tree(4242)

@requires_sh
class TestRunBenchmark:
    def test_success_returns_artifact(
        self, repo_dir: Path, fake_hyperfine: FakeHyperfine
    ) -> None:
        fake_hyperfine.writes({"results": [make_result()]})

        run = run_benchmark("abc123", repo_dir, show_output=False)

        assert run.returncode == 0
        assert run.artifact_path == repo_dir / "results.json"
        assert run.artifact_path.exists()
        assert "building" in run.stdout
        assert "warming up" in run.stderr
        assert fake_hyperfine.argv[:4] == ["--parameter-list", "commit", "abc123", "--setup"]
        assert fake_hyperfine.argv[-1].startswith("./build/src/bitcoind -datadir=")

    def test_nonzero_exit_raises_with_captured_output(
        self, repo_dir: Path, fake_hyperfine: FakeHyperfine
    ) -> None:
        fake_hyperfine.exits_with(3)

        with pytest.raises(RunnerError) as exc_info:
            run_benchmark("abc123", repo_dir, show_output=False)

        err = exc_info.value
        assert err.returncode == 3
        assert "fake hyperfine: building" in err.stdout
        assert "fake hyperfine: warming up" in err.stderr
        assert "status 3" in str(err)
        assert "Stdout: fake hyperfine: building" in str(err)
        assert "Stderr: fake hyperfine: warming up" in str(err)

    def test_output_is_streamed_live(
        self,
        repo_dir: Path,
        fake_hyperfine: FakeHyperfine,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_hyperfine.writes({"results": [make_result()]})

        run_benchmark("abc123", repo_dir, show_output=True)

        captured = capsys.readouterr()
        assert "fake hyperfine: building" in captured.out
        assert "fake hyperfine: warming up" in captured.err

    def test_stale_artifact_is_removed(
        self, repo_dir: Path, fake_hyperfine: FakeHyperfine
    ) -> None:
        stale = repo_dir / "results.json"
        stale.write_text('{"results": []}', encoding="utf-8")

        run = run_benchmark("abc123", repo_dir, show_output=False)

        assert not run.artifact_path.exists()

    def test_runs_inside_repo(self, repo_dir: Path, fake_hyperfine: FakeHyperfine) -> None:
        fake_hyperfine.writes({"results": [make_result()]})
        run_benchmark("abc123", repo_dir, show_output=False)
        # The stub copies its payload into its working directory
        assert (repo_dir / "results.json").exists()


class TestRunBenchmarkFailures:
    def test_root_data_dir_never_reaches_the_shell(self, repo_dir: Path) -> None:
        with patch("bitcoin_bench.runner.driver.subprocess.Popen") as popen:
            with pytest.raises(RunnerError, match="Invalid hyperfine data directory"):
                run_benchmark("abc123", repo_dir, data_dir="/", show_output=False)
        popen.assert_not_called()

    def test_unremovable_stale_artifact(self, repo_dir: Path) -> None:
        (repo_dir / "results.json").mkdir()
        with patch("bitcoin_bench.runner.driver.subprocess.Popen") as popen:
            with pytest.raises(RunnerError, match="Failed to remove stale results file"):
                run_benchmark("abc123", repo_dir, show_output=False)
        popen.assert_not_called()

    def test_missing_shell(self, repo_dir: Path) -> None:
        with patch(
            "bitcoin_bench.runner.driver.subprocess.Popen",
            side_effect=FileNotFoundError("sh"),
        ):
            with pytest.raises(RunnerError, match="Failed to execute") as exc_info:
                run_benchmark("abc123", repo_dir, show_output=False)
        assert exc_info.value.returncode is None

    def test_timeout_kills_process_tree(self, repo_dir: Path) -> None:
        process = MagicMock()
        process.pid = 4242
        process.stdout.readline.return_value = ""
        process.stderr.readline.return_value = ""
        process.wait.side_effect = [subprocess.TimeoutExpired("sh", 5), -9]

        with (
            patch("bitcoin_bench.runner.driver.subprocess.Popen", return_value=process),
            patch("bitcoin_bench.runner.driver.kill_process_tree") as kill,
        ):
            with pytest.raises(RunnerError, match="timed out after 5"):
                run_benchmark("abc123", repo_dir, timeout=5, show_output=False)

        kill.assert_called_once_with(4242)

    def test_interrupt_kills_process_tree(self, repo_dir: Path) -> None:
        process = MagicMock()
        process.pid = 4242
        process.stdout.readline.return_value = ""
        process.stderr.readline.return_value = ""
        process.wait.side_effect = [KeyboardInterrupt, -2]

        with (
            patch("bitcoin_bench.runner.driver.subprocess.Popen", return_value=process),
            patch("bitcoin_bench.runner.driver.kill_process_tree") as kill,
        ):
            with pytest.raises(KeyboardInterrupt):
                run_benchmark("abc123", repo_dir, show_output=False)

        kill.assert_called_once_with(4242)
