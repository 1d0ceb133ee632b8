class BenchError(RuntimeError):
    """Base class for benchmark pipeline failures."""


class WorkspaceError(BenchError):
    """git could not move the checkout to the requested revision.

    Attributes:
        step: Pipeline step that failed ("chdir", "fetch" or "checkout").
        revision: Revision that was requested.
        returncode: git exit status, or None if git never ran.
        output: Captured git output (stderr preferred).
    """

    def __init__(
        self,
        *,
        step: str,
        revision: str,
        message: str,
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.step = step
        self.revision = revision
        self.returncode = returncode
        self.output = output


class RunnerError(BenchError):
    """hyperfine exited non-zero, timed out, or could not be launched."""

    def __init__(
        self,
        *,
        command: str,
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
        reason: str | None = None,
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        if reason is None:
            reason = f"hyperfine command failed with status {returncode}"
        super().__init__(f"{reason}:\nStdout: {stdout}\nStderr: {stderr}")


class ParseError(BenchError):
    """The hyperfine JSON export is unreadable or malformed."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        super().__init__(f"{path}: {message}")


class StoreError(BenchError):
    """The results database rejected an operation."""


class OrchestratorError(BenchError):
    """A pipeline run failed; the original error is chained as __cause__."""

    def __init__(self, revision: str, cause: BaseException) -> None:
        self.revision = revision
        super().__init__(f"Benchmark pipeline for {revision!r} failed: {cause}")


class ScheduleError(BenchError, ValueError):
    """Invalid cron expression."""

    def __init__(self, expression: str, message: str) -> None:
        self.expression = expression
        super().__init__(f"Invalid schedule {expression!r}: {message}")


__all__ = [
    "BenchError",
    "OrchestratorError",
    "ParseError",
    "RunnerError",
    "ScheduleError",
    "StoreError",
    "WorkspaceError",
]
