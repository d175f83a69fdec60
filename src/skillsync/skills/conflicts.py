"""Read-only conflict checks run before an install mutates anything."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from skillsync.errors import AlreadyExistsError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from skillsync.skills.agents import AgentTarget

ConflictKind = Literal["physical_conflict", "already_linked"]


@dataclass(frozen=True)
class AgentConflict:
    agent_id: str
    path: Path
    kind: ConflictKind


def check_conflicts(
    name: str,
    targets: Sequence[AgentTarget],
    *,
    repo_root: Path,
    force: bool = False,
) -> list[AgentConflict]:
    """Fail on the first conflict, or with ``force`` return the agent conflicts.

    A managed copy already in the repository is never overridable.
    """
    repo_entry = repo_root / name
    if os.path.lexists(repo_entry):
        raise AlreadyExistsError(name, repo_entry, kind="in_repository")

    conflicts: list[AgentConflict] = []
    for target in targets:
        link_path = target.link_path(name)
        if not os.path.lexists(link_path):
            continue
        kind: ConflictKind = "already_linked" if os.path.islink(link_path) else "physical_conflict"
        if not force:
            raise AlreadyExistsError(name, link_path, kind=kind, agent_id=target.agent_id)
        conflicts.append(AgentConflict(agent_id=target.agent_id, path=link_path, kind=kind))
    return conflicts
