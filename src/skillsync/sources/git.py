"""Shallow git fetch of remote skill sources."""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from skillsync.core.logging.logger import get_logger
from skillsync.errors import GitError, PathTraversalError

if TYPE_CHECKING:
    from skillsync.sources.path_safety import ParsedRemote

logger = get_logger(__name__)

TEMP_PREFIX = "skillsync-"


@runtime_checkable
class GitCapability(Protocol):
    """The narrow slice of git the installer needs."""

    def available(self) -> bool: ...

    def clone(self, url: str, dest: Path, *, depth: int, ref: str | None = None) -> None: ...


class SubprocessGit:
    """Runs the ``git`` binary found on ``PATH``."""

    def __init__(self, executable: str = "git", *, timeout: float | None = None) -> None:
        self.executable = executable
        self.timeout = timeout

    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def clone(self, url: str, dest: Path, *, depth: int, ref: str | None = None) -> None:
        args = [self.executable, "clone", "--depth", str(depth)]
        if ref:
            args.extend(["--branch", ref])
        args.extend(["--", url, str(dest)])

        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"

        logger.debug("Running git clone", data={"url": url, "depth": depth, "ref": ref})
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                check=False,
                env=env,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise GitError(
                f"'{self.executable}' executable not found on PATH",
                kind="not_installed",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise GitError(
                f"clone of {url} timed out after {self.timeout}s",
                kind="clone_failed",
            ) from exc

        if result.returncode != 0:
            stderr = result.stderr.strip() or result.stdout.strip()
            raise GitError(
                f"clone of {url} failed with exit code {result.returncode}",
                kind="clone_failed",
                detail=stderr or None,
            )


@dataclass
class FetchedSkill:
    """A fetched skill tree plus the temporary directories that hold it."""

    path: Path
    temp_roots: list[Path] = field(default_factory=list)


def _remove_all(paths: list[Path]) -> None:
    for path in paths:
        shutil.rmtree(path, ignore_errors=True)


def _select_subdir(clone_dir: Path, subdir: str) -> Path:
    candidate = clone_dir / subdir
    if not os.path.lexists(candidate):
        raise GitError(
            f"subdirectory '{subdir}' not found in repository",
            kind="subdir_not_found",
        )
    root = clone_dir.resolve()
    resolved = candidate.resolve()
    try:
        resolved.relative_to(root)
    except ValueError as exc:
        raise PathTraversalError(subdir) from exc
    if not resolved.is_dir():
        raise GitError(
            f"subdirectory '{subdir}' is not a directory",
            kind="subdir_not_found",
        )
    return resolved


class GitFetcher:
    def __init__(
        self,
        git: GitCapability,
        *,
        depth: int = 1,
        temp_dir: Path | None = None,
    ) -> None:
        self.git = git
        self.depth = depth
        self.temp_dir = temp_dir

    def _mkdtemp(self) -> Path:
        return Path(tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=self.temp_dir))

    def fetch(self, parsed: ParsedRemote) -> FetchedSkill:
        """Clone ``parsed`` and return the directory holding the skill.

        The caller owns the returned temporary roots. On failure they have
        already been removed.
        """
        temp_roots: list[Path] = []
        try:
            clone_root = self._mkdtemp()
            temp_roots.append(clone_root)
            clone_dir = clone_root / "repo"

            self.git.clone(parsed.clone_url, clone_dir, depth=self.depth, ref=parsed.ref)
            logger.info(
                "Cloned repository",
                data={"url": parsed.clone_url, "depth": self.depth, "ref": parsed.ref},
            )

            if parsed.subdir:
                source_dir = _select_subdir(clone_dir, parsed.subdir)
                subtree_root = self._mkdtemp()
                temp_roots.append(subtree_root)
                skill_dir = subtree_root / "skill"
                shutil.copytree(source_dir, skill_dir, symlinks=True)
                shutil.rmtree(clone_root)
                temp_roots.remove(clone_root)
            else:
                skill_dir = clone_dir

            git_dir = skill_dir / ".git"
            if git_dir.is_dir() and not git_dir.is_symlink():
                shutil.rmtree(git_dir)
            elif os.path.lexists(git_dir):
                git_dir.unlink()
        except BaseException:
            _remove_all(temp_roots)
            raise

        return FetchedSkill(path=skill_dir, temp_roots=temp_roots)
