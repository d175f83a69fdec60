from __future__ import annotations

from pathlib import Path

import pytest

from skillsync.config import (
    CONFIG_ENV_VAR,
    MAX_CONFIG_BYTES,
    load_settings,
)
from skillsync.errors import ConfigError


def _write_yaml(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    for name in ("SKILLSYNC_REPO_ROOT", "SKILLSYNC_CLONE_DEPTH", "SKILLSYNC_GIT_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    yield


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "missing.yaml")

    assert list(settings.agents) == ["claude-code", "windsurf", "opencode", "kilocode", "amp"]
    assert settings.repo_root == tmp_path / "home" / ".skillsync" / "repo"
    assert settings.agents["claude-code"].global_path == tmp_path / "home" / ".claude" / "skills"
    assert settings.agents["amp"].workspace_path == Path(".agents/skills")
    assert settings.clone_depth == 1
    assert settings.git_timeout == 300.0


def test_yaml_replaces_agent_table(tmp_path: Path) -> None:
    path = _write_yaml(
        tmp_path / "config.yaml",
        "repo_root: ~/managed\n"
        "agents:\n"
        "  custom-agent:\n"
        "    global_path: /custom/global\n"
        "    workspace_path: .custom/workspace\n"
        "  amp:\n"
        "    enabled: false\n"
        "    global_path: $SKILLS_HOME/amp\n"
        "    workspace_path: .agents/skills\n",
    )

    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("SKILLS_HOME", str(tmp_path / "skills-home"))
        settings = load_settings(path)

    assert list(settings.agents) == ["custom-agent", "amp"]
    assert settings.repo_root == tmp_path / "home" / "managed"
    assert settings.agents["amp"].global_path == tmp_path / "skills-home" / "amp"
    assert settings.agents["amp"].enabled is False


def test_workspace_path_expands_variables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SKILLS_DIR", ".shared/skills")
    path = _write_yaml(
        tmp_path / "config.yaml",
        "agents:\n"
        "  amp:\n"
        "    global_path: ~/amp\n"
        "    workspace_path: $SKILLS_DIR/amp\n"
        "  codex:\n"
        "    global_path: ~/codex\n"
        "    workspace_path: ~/codex-workspace\n",
    )

    settings = load_settings(path)

    assert settings.agents["amp"].workspace_path == Path(".shared/skills/amp")
    assert settings.agents["codex"].workspace_path == tmp_path / "home" / "codex-workspace"


def test_environment_overrides_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SKILLSYNC_CLONE_DEPTH", "5")
    monkeypatch.setenv("SKILLSYNC_REPO_ROOT", str(tmp_path / "env-repo"))

    settings = load_settings(tmp_path / "missing.yaml")

    assert settings.clone_depth == 5
    assert settings.repo_root == tmp_path / "env-repo"


def test_config_env_var_selects_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write_yaml(tmp_path / "custom.yaml", "clone_depth: 2\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    assert load_settings().clone_depth == 2


@pytest.mark.parametrize(
    ("content", "fragment"),
    [
        ("agents: [unclosed\n", "invalid YAML"),
        ("- a\n- b\n", "must be a mapping"),
        ("unknown_key: 1\n", "unknown_key"),
        (
            "agents:\n  amp:\n    global_path: /x\n    workspace_path: y\n    colour: blue\n",
            "colour",
        ),
        ("clone_depth: 0\n", "clone_depth"),
    ],
)
def test_invalid_config_raises_config_error(tmp_path: Path, content: str, fragment: str) -> None:
    path = _write_yaml(tmp_path / "config.yaml", content)

    with pytest.raises(ConfigError) as exc_info:
        load_settings(path)

    assert fragment in str(exc_info.value)
    assert exc_info.value.path == path


def test_oversized_config_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("#" * (MAX_CONFIG_BYTES + 1), encoding="utf-8")

    with pytest.raises(ConfigError, match="maximum"):
        load_settings(path)


def test_empty_file_uses_defaults(tmp_path: Path) -> None:
    path = _write_yaml(tmp_path / "config.yaml", "")

    assert "claude-code" in load_settings(path).agents

