from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from skillsync.config import AgentSettings
from skillsync.errors import GitError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

AGENT_IDS = ("claude-code", "windsurf", "opencode", "kilocode", "amp")


def write_skill(
    directory: Path,
    name: str,
    *,
    description: str = "A test skill",
    files: Mapping[str, str] | None = None,
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "SKILL.md").write_text(
        f"---\nname: {name}\ndescription: {description}\n---\n\n# {name}\n",
        encoding="utf-8",
    )
    for relative, content in (files or {}).items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return directory


class FakeGit:
    """Git capability that writes a canned tree instead of cloning."""

    def __init__(
        self,
        files: Mapping[str, str] | None = None,
        *,
        error: Exception | None = None,
        installed: bool = True,
    ) -> None:
        self.files = dict(files or {})
        self.error = error
        self.installed = installed
        self.calls: list[dict[str, object]] = []

    def available(self) -> bool:
        return self.installed

    def clone(self, url: str, dest: Path, *, depth: int, ref: str | None = None) -> None:
        self.calls.append({"url": url, "dest": dest, "depth": depth, "ref": ref})
        if not self.installed:
            raise GitError("'git' executable not found on PATH", kind="not_installed")
        dest.mkdir(parents=True)
        for relative, content in self.files.items():
            path = dest / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        if self.error is not None:
            raise self.error


@pytest.fixture
def make_skill(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str, *, dirname: str | None = None, **kwargs) -> Path:
        return write_skill(tmp_path / "sources" / (dirname or name), name, **kwargs)

    return _make


@pytest.fixture
def agent_table(tmp_path: Path) -> dict[str, AgentSettings]:
    agents_root = tmp_path / "agents"
    return {
        agent_id: AgentSettings(
            global_path=agents_root / agent_id / "skills",
            workspace_path=Path(f".{agent_id}") / "skills",
        )
        for agent_id in AGENT_IDS
    }


@pytest.fixture
def repo_root(tmp_path: Path) -> Path:
    return tmp_path / "repo"


@pytest.fixture
def fake_git() -> type[FakeGit]:
    return FakeGit
