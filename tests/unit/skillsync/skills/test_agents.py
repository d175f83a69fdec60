from __future__ import annotations

from pathlib import Path

import pytest

from skillsync.config import AgentSettings
from skillsync.errors import NoAgentsSelectedError, UnknownAgentError, ValidationError
from skillsync.skills.agents import AgentTarget, resolve_agent_targets


def _ids(targets: list[AgentTarget]) -> list[str]:
    return [target.agent_id for target in targets]


def test_comma_separated_selection_preserves_order_and_dedupes(agent_table) -> None:
    targets = resolve_agent_targets("amp, claude-code,amp", agent_table)

    assert _ids(targets) == ["amp", "claude-code"]
    assert targets[0].skill_root_path == agent_table["amp"].global_path


def test_sequence_selection(agent_table) -> None:
    assert _ids(resolve_agent_targets(["windsurf", "opencode"], agent_table)) == [
        "windsurf",
        "opencode",
    ]


def test_all_selects_enabled_agents_in_config_order(agent_table) -> None:
    agent_table["kilocode"] = agent_table["kilocode"].model_copy(update={"enabled": False})

    targets = resolve_agent_targets("ALL", agent_table)

    assert _ids(targets) == ["claude-code", "windsurf", "opencode", "amp"]


def test_unknown_agent_lists_valid_agents(agent_table) -> None:
    with pytest.raises(UnknownAgentError) as exc_info:
        resolve_agent_targets("claude-code,cursor", agent_table)

    assert exc_info.value.kind == "unknown_agent"
    assert exc_info.value.agent_id == "cursor"
    assert "claude-code" in str(exc_info.value)


def test_disabled_agent_is_rejected_when_named(agent_table) -> None:
    agent_table["amp"] = agent_table["amp"].model_copy(update={"enabled": False})

    with pytest.raises(ValidationError) as exc_info:
        resolve_agent_targets("amp", agent_table)

    assert exc_info.value.kind == "agent_disabled"


@pytest.mark.parametrize("selection", ["", " , ", []])
def test_empty_selection(agent_table, selection) -> None:
    with pytest.raises(NoAgentsSelectedError) as exc_info:
        resolve_agent_targets(selection, agent_table)

    assert exc_info.value.kind == "no_agents_selected"


def test_no_selection_without_prompt(agent_table) -> None:
    with pytest.raises(NoAgentsSelectedError):
        resolve_agent_targets(None, agent_table)


def test_prompt_receives_enabled_agents(agent_table) -> None:
    agent_table["windsurf"] = agent_table["windsurf"].model_copy(update={"enabled": False})
    offered: list[str] = []

    def prompt(targets: list[AgentTarget]) -> list[str]:
        offered.extend(_ids(targets))
        return ["opencode"]

    targets = resolve_agent_targets(None, agent_table, prompt=prompt)

    assert "windsurf" not in offered
    assert _ids(targets) == ["opencode"]


@pytest.mark.parametrize("answer", [None, []])
def test_cancelled_prompt(agent_table, answer) -> None:
    with pytest.raises(NoAgentsSelectedError):
        resolve_agent_targets(None, agent_table, prompt=lambda targets: answer)


def test_workspace_scope_uses_workspace_paths(agent_table, tmp_path: Path) -> None:
    project = tmp_path / "project"

    targets = resolve_agent_targets("claude-code", agent_table, scope="workspace", cwd=project)

    assert targets[0].skill_root_path == project / ".claude-code" / "skills"


def test_workspace_scope_keeps_absolute_paths(tmp_path: Path) -> None:
    agents = {
        "custom": AgentSettings(
            global_path=tmp_path / "global",
            workspace_path=tmp_path / "absolute-workspace",
        )
    }

    targets = resolve_agent_targets("custom", agents, scope="workspace", cwd=tmp_path / "elsewhere")

    assert targets[0].skill_root_path == tmp_path / "absolute-workspace"
