"""Resolve which agent skill directories an install fans out to."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from skillsync.errors import NoAgentsSelectedError, UnknownAgentError, ValidationError

if TYPE_CHECKING:
    from skillsync.config import AgentSettings

Scope = Literal["global", "workspace"]
AgentSelection = str | Sequence[str] | None

ALL_AGENTS = "all"


@dataclass(frozen=True)
class AgentTarget:
    agent_id: str
    skill_root_path: Path
    enabled: bool = True

    def link_path(self, name: str) -> Path:
        return self.skill_root_path / name


AgentPrompt = Callable[[list[AgentTarget]], list[str] | None]


def build_agent_targets(
    agents: Mapping[str, AgentSettings],
    *,
    scope: Scope = "global",
    cwd: Path | None = None,
) -> list[AgentTarget]:
    """Turn configured agents into targets, keeping configuration order."""
    base = cwd or Path.cwd()
    targets: list[AgentTarget] = []
    for agent_id, settings in agents.items():
        if scope == "workspace":
            root = settings.workspace_path
            if not root.is_absolute():
                root = base / root
        else:
            root = settings.global_path
        targets.append(AgentTarget(agent_id=agent_id, skill_root_path=root, enabled=settings.enabled))
    return targets


def _split_selection(selection: str | Sequence[str]) -> list[str]:
    if isinstance(selection, str):
        return [part.strip() for part in selection.split(",") if part.strip()]
    return [item.strip() for item in selection if item and item.strip()]


def resolve_agent_targets(
    selection: AgentSelection,
    agents: Mapping[str, AgentSettings],
    *,
    prompt: AgentPrompt | None = None,
    scope: Scope = "global",
    cwd: Path | None = None,
) -> list[AgentTarget]:
    """Resolve ``selection`` against the configured ``agents``.

    ``selection`` may be a comma-separated string, ``"all"``, a sequence of
    agent ids, or ``None`` to ask ``prompt`` with the enabled agents.
    """
    targets = build_agent_targets(agents, scope=scope, cwd=cwd)
    by_id = {target.agent_id: target for target in targets}
    enabled = [target for target in targets if target.enabled]

    if selection is None:
        if prompt is None:
            raise NoAgentsSelectedError("no agents selected and no interactive prompt available")
        if not enabled:
            raise NoAgentsSelectedError("no enabled agents in configuration")
        answer = prompt(enabled)
        if not answer:
            raise NoAgentsSelectedError()
        requested = _split_selection(answer)
    elif isinstance(selection, str) and selection.strip().lower() == ALL_AGENTS:
        if not enabled:
            raise NoAgentsSelectedError("no enabled agents in configuration")
        return enabled
    else:
        requested = _split_selection(selection)

    resolved: list[AgentTarget] = []
    seen: set[str] = set()
    for agent_id in requested:
        target = by_id.get(agent_id)
        if target is None:
            raise UnknownAgentError(agent_id, [t.agent_id for t in enabled])
        if not target.enabled:
            raise ValidationError(
                f"agent '{agent_id}' is disabled in configuration",
                kind="agent_disabled",
            )
        if agent_id in seen:
            continue
        seen.add(agent_id)
        resolved.append(target)

    if not resolved:
        raise NoAgentsSelectedError()
    return resolved
