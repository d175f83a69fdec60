"""The install pipeline: resolve, fetch, validate, check, copy, link."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from skillsync.core.logging.logger import get_logger
from skillsync.errors import SkillSyncError, UnrecognizedSourceError
from skillsync.skills.agents import resolve_agent_targets
from skillsync.skills.conflicts import AgentConflict, check_conflicts
from skillsync.skills.manifest import validate_skill_dir
from skillsync.skills.transaction import (
    CreatedStagingDir,
    InstallReceipt,
    InstallTransaction,
    SkillInstaller,
    attach_rollback_errors,
)
from skillsync.sources.git import GitFetcher, SubprocessGit
from skillsync.sources.resolver import SkillSource, resolve_source

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skillsync.config import AgentSettings
    from skillsync.skills.agents import AgentPrompt, AgentSelection, AgentTarget, Scope
    from skillsync.skills.manifest import StagedSkill
    from skillsync.sources.git import GitCapability

logger = get_logger(__name__)


class InstallState(str, Enum):
    IDLE = "idle"
    RESOLVING_SOURCE = "resolving_source"
    FETCHING = "fetching"
    VALIDATING = "validating"
    RESOLVING_TARGETS = "resolving_targets"
    DETECTING_CONFLICTS = "detecting_conflicts"
    COPYING = "copying"
    LINKING = "linking"
    DONE = "done"
    ABORTED = "aborted"
    ROLLED_BACK = "rolled_back"


_MUTATING_STATES = {InstallState.COPYING, InstallState.LINKING}


@dataclass(frozen=True)
class InstallResult:
    source: SkillSource
    skill: StagedSkill
    targets: list[AgentTarget]
    receipt: InstallReceipt
    displaced: list[AgentConflict] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.receipt.name

    @property
    def repo_path(self) -> Path:
        return self.receipt.repo_path


class InstallEngine:
    """Runs one install at a time against an injected agent table and repo root."""

    def __init__(
        self,
        agents: Mapping[str, AgentSettings],
        *,
        repo_root: Path,
        git: GitCapability | None = None,
        prompt: AgentPrompt | None = None,
        depth: int = 1,
        git_timeout: float | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.agents = agents
        self.repo_root = Path(repo_root).expanduser().absolute()
        self.git = git if git is not None else SubprocessGit(timeout=git_timeout)
        self.prompt = prompt
        self.depth = depth
        self.cwd = cwd
        self.installer = SkillInstaller(self.repo_root)
        self.state = InstallState.IDLE
        self.transitions: list[InstallState] = []

    def _enter(self, state: InstallState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug("Install state", data={"state": state.value})

    def install(
        self,
        source: str,
        *,
        agents: AgentSelection = None,
        force: bool = False,
        scope: Scope = "global",
    ) -> InstallResult:
        """Install ``source`` into the repository and link it for ``agents``.

        Raises a :class:`~skillsync.errors.SkillSyncError` whose ``state`` is
        the step that failed. Nothing is left behind on failure.
        """
        self.state = InstallState.IDLE
        self.transitions = []
        transaction = InstallTransaction()
        try:
            result = self._run(source, agents=agents, force=force, scope=scope, transaction=transaction)
        except BaseException as exc:
            failed_state = self.state
            if isinstance(exc, SkillSyncError) and exc.state is None:
                exc.state = failed_state.value
            errors = transaction.rollback()
            attach_rollback_errors(exc, errors)
            self._enter(
                InstallState.ROLLED_BACK if failed_state in _MUTATING_STATES else InstallState.ABORTED
            )
            logger.info(
                "Install failed",
                data={"source": source, "state": failed_state.value, "error": str(exc)},
            )
            raise

        transaction.commit()
        self._enter(InstallState.DONE)
        return result

    def _run(
        self,
        raw: str,
        *,
        agents: AgentSelection,
        force: bool,
        scope: Scope,
        transaction: InstallTransaction,
    ) -> InstallResult:
        self._enter(InstallState.RESOLVING_SOURCE)
        source = resolve_source(raw, cwd=self.cwd)

        if source.remote is not None:
            self._enter(InstallState.FETCHING)
            fetched = GitFetcher(self.git, depth=self.depth).fetch(source.remote)
            for root in fetched.temp_roots:
                transaction.record(CreatedStagingDir(root))
            staged_dir = fetched.path
        elif source.path is not None:
            staged_dir = source.path
        else:
            raise UnrecognizedSourceError(raw)

        self._enter(InstallState.VALIDATING)
        skill = validate_skill_dir(staged_dir)

        self._enter(InstallState.RESOLVING_TARGETS)
        targets = resolve_agent_targets(
            agents,
            self.agents,
            prompt=self.prompt,
            scope=scope,
            cwd=self.cwd,
        )

        self._enter(InstallState.DETECTING_CONFLICTS)
        conflicts = check_conflicts(skill.name, targets, repo_root=self.repo_root, force=force)
        if conflicts:
            logger.warning(
                "Replacing existing agent entries",
                data={"name": skill.name, "agents": [c.agent_id for c in conflicts]},
            )

        self._enter(InstallState.COPYING)
        repo_path = self.installer.copy_to_repository(skill, transaction)

        self._enter(InstallState.LINKING)
        links = self.installer.link_targets(
            skill.name,
            repo_path,
            targets,
            transaction,
            displace=conflicts,
        )

        receipt = InstallReceipt(name=skill.name, repo_path=repo_path, links=links)
        return InstallResult(
            source=source,
            skill=skill,
            targets=targets,
            receipt=receipt,
            displaced=conflicts,
        )
