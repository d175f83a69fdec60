"""Transactional copy-and-link of a staged skill.

Every filesystem mutation is recorded on an :class:`InstallTransaction`
as soon as it has happened. A failure replays the recorded actions in
reverse; success finalises them (removing temporary directories and
backups of displaced entries).
"""

from __future__ import annotations

import errno
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from skillsync.core.logging.logger import get_logger
from skillsync.errors import (
    AlreadyExistsError,
    PermissionDeniedError,
    RollbackError,
    SkillSyncError,
    SymlinkNotAllowedError,
    ValidationError,
    mutation_error,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from skillsync.skills.agents import AgentTarget
    from skillsync.skills.conflicts import AgentConflict
    from skillsync.skills.manifest import StagedSkill

logger = get_logger(__name__)

SKIPPED_NAMES = frozenset({".git"})
_EXISTS_ERRNOS = {errno.EEXIST, errno.ENOTEMPTY, errno.ENOTDIR}


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class TransactionAction(Protocol):
    def describe(self) -> str: ...

    def undo(self) -> None: ...

    def finalize(self) -> None: ...


@dataclass(frozen=True)
class CreatedStagingDir:
    """A temporary directory that must not outlive the install."""

    path: Path

    def describe(self) -> str:
        return f"staging directory {self.path}"

    def undo(self) -> None:
        if os.path.lexists(self.path):
            _remove_path(self.path)

    def finalize(self) -> None:
        self.undo()


@dataclass(frozen=True)
class CreatedDirectory:
    """A skill root created by ``mkdir -p``; removed again only while empty."""

    path: Path

    def describe(self) -> str:
        return f"directory {self.path}"

    def undo(self) -> None:
        try:
            os.rmdir(self.path)
        except OSError as exc:
            if exc.errno not in {errno.ENOENT, errno.ENOTEMPTY, errno.EEXIST}:
                raise

    def finalize(self) -> None:
        return None


@dataclass(frozen=True)
class CreatedRepoEntry:
    name: str
    path: Path

    def describe(self) -> str:
        return f"repository entry {self.path}"

    def undo(self) -> None:
        if os.path.islink(self.path):
            raise RollbackError(self.describe(), "path was replaced by a symlink")
        if self.path.is_dir():
            shutil.rmtree(self.path)

    def finalize(self) -> None:
        return None


@dataclass(frozen=True)
class CreatedSymlink:
    agent_id: str
    name: str
    link_path: Path
    target: Path

    def describe(self) -> str:
        return f"symlink {self.link_path} for agent '{self.agent_id}'"

    def undo(self) -> None:
        if not os.path.lexists(self.link_path):
            return
        if not os.path.islink(self.link_path):
            raise RollbackError(self.describe(), "path is no longer a symlink, left in place")
        current = os.readlink(self.link_path)
        if current != str(self.target):
            raise RollbackError(
                self.describe(),
                f"symlink now points to {current}, left in place",
            )
        os.unlink(self.link_path)

    def finalize(self) -> None:
        return None


@dataclass(frozen=True)
class DisplacedEntry:
    """An agent entry moved aside by ``--force``."""

    agent_id: str
    path: Path
    backup_path: Path

    def describe(self) -> str:
        return f"displaced entry {self.path} for agent '{self.agent_id}'"

    def undo(self) -> None:
        if os.path.lexists(self.path):
            raise RollbackError(
                self.describe(),
                f"original location is occupied, backup kept at {self.backup_path}",
            )
        os.rename(self.backup_path, self.path)

    def finalize(self) -> None:
        if os.path.lexists(self.backup_path):
            _remove_path(self.backup_path)


@dataclass
class InstallTransaction:
    """Undo stack for a single install call."""

    actions: list[TransactionAction] = field(default_factory=list)
    closed: bool = False

    def record(self, action: TransactionAction) -> None:
        if self.closed:
            raise RuntimeError("transaction is already closed")
        self.actions.append(action)
        logger.debug("Recorded action", data={"action": action.describe()})

    def discard(self, action: TransactionAction) -> list[Exception]:
        """Undo one recorded action immediately and forget it."""
        self.actions.remove(action)
        try:
            action.undo()
        except Exception as exc:
            return [_as_rollback_error(action, exc)]
        return []

    def rollback(self) -> list[Exception]:
        """Undo every recorded action in reverse order.

        Each action is attempted even when an earlier one fails; the
        failures are returned rather than raised.
        """
        errors: list[Exception] = []
        while self.actions:
            action = self.actions.pop()
            try:
                action.undo()
            except Exception as exc:
                error = _as_rollback_error(action, exc)
                logger.error("Rollback step failed", data={"action": action.describe(), "error": str(error)})
                errors.append(error)
        self.closed = True
        return errors

    def commit(self) -> None:
        for action in self.actions:
            try:
                action.finalize()
            except OSError as exc:
                logger.warning(
                    "Failed to finalize install action",
                    data={"action": action.describe(), "error": str(exc)},
                )
        self.actions.clear()
        self.closed = True


def _as_rollback_error(action: TransactionAction, exc: Exception) -> Exception:
    if isinstance(exc, RollbackError):
        return exc
    return RollbackError(action.describe(), str(exc))


def attach_rollback_errors(exc: BaseException, errors: list[Exception]) -> None:
    if not errors:
        return
    if isinstance(exc, SkillSyncError):
        exc.attach_rollback_errors(errors)
        return
    for error in errors:
        exc.add_note(f"rollback: {error}")


@dataclass(frozen=True)
class InstalledLink:
    agent_id: str
    link_path: Path
    target: Path
    replaced: bool = False


@dataclass(frozen=True)
class InstallReceipt:
    name: str
    repo_path: Path
    links: list[InstalledLink]


def scan_for_symlinks(root: Path) -> None:
    """Reject symlinks and special files anywhere below ``root``."""
    if root.is_symlink():
        raise SymlinkNotAllowedError(root)
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        dirnames[:] = [name for name in dirnames if name not in SKIPPED_NAMES]
        for name in sorted(dirnames + filenames):
            path = Path(dirpath) / name
            mode = os.lstat(path).st_mode
            if stat.S_ISLNK(mode):
                raise SymlinkNotAllowedError(path)
            if not (stat.S_ISDIR(mode) or stat.S_ISREG(mode)):
                raise ValidationError(
                    f"unsupported file type at {path}",
                    kind="unsupported_entry",
                )


def _copy_tree(source: Path, dest: Path) -> None:
    dest.mkdir()
    with os.scandir(source) as entries:
        for entry in sorted(entries, key=lambda item: item.name):
            if entry.name in SKIPPED_NAMES:
                continue
            src_path = Path(entry.path)
            dest_path = dest / entry.name
            if entry.is_symlink():
                raise SymlinkNotAllowedError(src_path)
            if entry.is_dir(follow_symlinks=False):
                _copy_tree(src_path, dest_path)
            elif entry.is_file(follow_symlinks=False):
                shutil.copy2(src_path, dest_path, follow_symlinks=False)
            else:
                raise ValidationError(
                    f"unsupported file type at {src_path}",
                    kind="unsupported_entry",
                )
    shutil.copystat(source, dest, follow_symlinks=False)


def _missing_ancestors(path: Path) -> list[Path]:
    missing: list[Path] = []
    current = path
    while not os.path.lexists(current) and current != current.parent:
        missing.append(current)
        current = current.parent
    return list(reversed(missing))


class SkillInstaller:
    """Copies a staged skill into the managed repository and links it out."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root).expanduser().absolute()

    def install(
        self,
        staged: StagedSkill,
        targets: Sequence[AgentTarget],
        *,
        displace: Iterable[AgentConflict] = (),
        transaction: InstallTransaction | None = None,
    ) -> InstallReceipt:
        owns_transaction = transaction is None
        txn = transaction if transaction is not None else InstallTransaction()
        try:
            repo_path = self.copy_to_repository(staged, txn)
            links = self.link_targets(staged.name, repo_path, targets, txn, displace=displace)
        except BaseException as exc:
            if owns_transaction:
                attach_rollback_errors(exc, txn.rollback())
            raise
        if owns_transaction:
            txn.commit()
        return InstallReceipt(name=staged.name, repo_path=repo_path, links=links)

    def copy_to_repository(self, staged: StagedSkill, transaction: InstallTransaction) -> Path:
        """Copy ``staged`` to ``<repo_root>/<name>`` with a single rename."""
        name = staged.name
        dest = self.repo_root / name
        scan_for_symlinks(staged.directory_path)

        try:
            self.repo_root.mkdir(parents=True, exist_ok=True)
        except PermissionError as exc:
            raise PermissionDeniedError("create repository", self.repo_root) from exc

        if os.path.lexists(dest):
            raise AlreadyExistsError(name, dest, kind="in_repository")

        staging = self.repo_root / f".{name}.staging-{uuid4().hex}"
        staging_action = CreatedStagingDir(staging)
        transaction.record(staging_action)
        try:
            _copy_tree(staged.directory_path, staging)
            os.rename(staging, dest)
        except PermissionError as exc:
            attach_rollback_errors(exc, transaction.discard(staging_action))
            raise PermissionDeniedError("copy skill", dest) from exc
        except OSError as exc:
            errors = transaction.discard(staging_action)
            if exc.errno in _EXISTS_ERRNOS:
                error = AlreadyExistsError(name, dest, kind="in_repository")
                error.attach_rollback_errors(errors)
                raise error from exc
            attach_rollback_errors(exc, errors)
            raise
        except BaseException as exc:
            attach_rollback_errors(exc, transaction.discard(staging_action))
            raise

        # The staging path no longer exists once renamed.
        transaction.actions.remove(staging_action)
        transaction.record(CreatedRepoEntry(name=name, path=dest))
        logger.info("Copied skill into repository", data={"name": name, "path": str(dest)})
        return dest

    def _ensure_root(self, root: Path, transaction: InstallTransaction) -> None:
        # Each level is recorded as soon as it exists.
        for path in _missing_ancestors(root):
            try:
                path.mkdir()
            except FileExistsError:
                if not path.is_dir():
                    raise
                continue
            transaction.record(CreatedDirectory(path))
        if not root.is_dir():
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(root))

    def link_targets(
        self,
        name: str,
        repo_path: Path,
        targets: Sequence[AgentTarget],
        transaction: InstallTransaction,
        *,
        displace: Iterable[AgentConflict] = (),
    ) -> list[InstalledLink]:
        forced = {conflict.agent_id: conflict for conflict in displace}
        links: list[InstalledLink] = []
        # Agents may share a skill directory; keyed by the resolved link path.
        linked: dict[Path, InstalledLink] = {}
        for target in targets:
            link_path = target.link_path(name)
            operation = "create skill directory"
            failed_path = target.skill_root_path
            try:
                self._ensure_root(target.skill_root_path, transaction)
                key = target.skill_root_path.resolve() / name
            except OSError as exc:
                raise mutation_error(exc, operation=operation, path=failed_path) from exc

            shared = linked.get(key)
            if shared is not None:
                links.append(
                    InstalledLink(
                        agent_id=target.agent_id,
                        link_path=link_path,
                        target=repo_path,
                        replaced=shared.replaced,
                    )
                )
                logger.debug(
                    "Skill directory shared with another agent",
                    data={"name": name, "agent": target.agent_id, "shared_with": shared.agent_id},
                )
                continue

            try:
                conflict = forced.get(target.agent_id)
                if conflict is not None and os.path.lexists(link_path):
                    operation = "move existing entry aside"
                    failed_path = link_path
                    backup = link_path.parent / f".{name}.displaced-{uuid4().hex}"
                    os.rename(link_path, backup)
                    transaction.record(
                        DisplacedEntry(agent_id=target.agent_id, path=link_path, backup_path=backup)
                    )
                elif os.path.lexists(link_path):
                    kind = "already_linked" if os.path.islink(link_path) else "physical_conflict"
                    raise AlreadyExistsError(name, link_path, kind=kind, agent_id=target.agent_id)

                operation = "create symlink"
                failed_path = link_path
                temp_link = link_path.parent / f".{name}.link-{uuid4().hex}"
                os.symlink(repo_path, temp_link, target_is_directory=True)
                try:
                    os.replace(temp_link, link_path)
                except OSError:
                    os.unlink(temp_link)
                    raise
            except OSError as exc:
                raise mutation_error(exc, operation=operation, path=failed_path) from exc

            transaction.record(
                CreatedSymlink(
                    agent_id=target.agent_id,
                    name=name,
                    link_path=link_path,
                    target=repo_path,
                )
            )
            installed = InstalledLink(
                agent_id=target.agent_id,
                link_path=link_path,
                target=repo_path,
                replaced=conflict is not None,
            )
            linked[key] = installed
            links.append(installed)
            logger.info(
                "Linked skill",
                data={"name": name, "agent": target.agent_id, "link": str(link_path)},
            )
        return links
