import logging
import subprocess  # nosec B404
from pathlib import Path

from .errors import WorkspaceError

logger = logging.getLogger(__name__)


def _run_git(repo_path: Path, args: list[str], *, step: str, revision: str) -> None:
    cmd = ["git", *args]
    logger.info("Running %s in %s", " ".join(cmd), repo_path)
    try:
        completed = subprocess.run(  # nosec B603 B607
            cmd,
            cwd=repo_path,
            check=False,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise WorkspaceError(
            step=step,
            revision=revision,
            message=f"Failed to run git {' '.join(args)} for {revision}: {exc}",
        ) from exc

    if completed.stdout:
        logger.debug("git %s stdout:\n%s", step, completed.stdout.rstrip())
    if completed.returncode == 0:
        return

    output = (completed.stderr or completed.stdout or "").strip()
    details = f": {output}" if output else ""
    raise WorkspaceError(
        step=step,
        revision=revision,
        returncode=completed.returncode,
        output=output,
        message=(
            f"git {' '.join(args)} failed for {revision} (code {completed.returncode}){details}"
        ),
    )


def prepare_workspace(revision: str, repo_path: Path | str) -> Path:
    """Refresh remotes and check out ``revision`` in the checkout at ``repo_path``.

    Every git call runs with ``repo_path`` as its working directory; the
    process working directory is left untouched.

    Returns:
        The resolved checkout path.

    Raises:
        WorkspaceError: If the checkout is missing or a git step exits non-zero.
    """
    path = Path(repo_path)
    if not path.is_dir():
        raise WorkspaceError(
            step="chdir",
            revision=revision,
            message=f"Failed to change directory to {path} for {revision}: not a directory",
        )
    path = path.resolve()

    _run_git(path, ["fetch", "--all"], step="fetch", revision=revision)
    _run_git(path, ["checkout", revision], step="checkout", revision=revision)
    logger.info("Checked out %s in %s", revision, path)
    return path


__all__ = ["prepare_workspace"]
