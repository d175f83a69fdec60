from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from skillsync.config import AgentSettings
from skillsync.errors import GitError
from skillsync.skills.engine import InstallEngine
from skillsync.sources.git import SubprocessGit

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available"),
]


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-c", "user.name=skillsync", "-c", "user.email=skillsync@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


def _make_repository(root: Path) -> Path:
    root.mkdir()
    (root / "README.md").write_text("top level\n", encoding="utf-8")
    skill = root / "skills" / "bar"
    skill.mkdir(parents=True)
    (skill / "SKILL.md").write_text("---\nname: bar\n---\n", encoding="utf-8")
    (skill / "run.sh").write_text("echo bar\n", encoding="utf-8")
    _git(root, "init", "-q")
    _git(root, "add", ".")
    _git(root, "commit", "-q", "-m", "initial")
    return root


class LocalRedirectGit(SubprocessGit):
    """Clones a local repository whatever GitHub URL is requested."""

    def __init__(self, local_repo: Path) -> None:
        super().__init__(timeout=60)
        self.local_repo = local_repo
        self.requested: list[str] = []

    def clone(self, url: str, dest: Path, *, depth: int, ref: str | None = None) -> None:
        self.requested.append(url)
        super().clone(self.local_repo.as_uri(), dest, depth=depth, ref=ref)


def test_subprocess_git_shallow_clone(tmp_path: Path) -> None:
    source = _make_repository(tmp_path / "origin")
    dest = tmp_path / "clone"

    SubprocessGit(timeout=60).clone(source.as_uri(), dest, depth=1)

    assert (dest / "skills" / "bar" / "SKILL.md").is_file()
    assert (dest / ".git").is_dir()


def test_subprocess_git_clone_failure_carries_stderr(tmp_path: Path) -> None:
    with pytest.raises(GitError) as exc_info:
        SubprocessGit(timeout=60).clone((tmp_path / "missing").as_uri(), tmp_path / "dest", depth=1)

    assert exc_info.value.kind == "clone_failed"
    assert exc_info.value.detail


def test_engine_installs_subtree_from_real_clone(tmp_path: Path) -> None:
    git = LocalRedirectGit(_make_repository(tmp_path / "origin"))
    agents = {
        "amp": AgentSettings(
            global_path=tmp_path / "agents" / "amp",
            workspace_path=Path(".agents/skills"),
        )
    }
    engine = InstallEngine(agents, repo_root=tmp_path / "repo", git=git)

    result = engine.install("org/proj/skills/bar", agents="amp")

    assert git.requested == ["https://github.com/org/proj.git"]
    assert sorted(p.name for p in result.repo_path.iterdir()) == ["SKILL.md", "run.sh"]
    assert os.readlink(tmp_path / "agents" / "amp" / "bar") == str(tmp_path / "repo" / "bar")
