"""Error types raised by the install engine.

Every error carries a machine-readable ``category`` (and, where the category
has variants, a ``kind``) so callers can branch without parsing messages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

ValidationKind = Literal[
    "not_a_directory",
    "no_agents_selected",
    "unknown_agent",
    "agent_disabled",
    "unsupported_entry",
    "invalid_name",
]
InvalidSkillMdKind = Literal["missing", "malformed"]
AlreadyExistsKind = Literal["in_repository", "physical_conflict", "already_linked"]
GitErrorKind = Literal["not_installed", "clone_failed", "subdir_not_found"]


class SkillSyncError(Exception):
    """Base class for all install failures."""

    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.rollback_errors: list[Exception] = []
        # Set by the engine to the state that was active when the error surfaced.
        self.state: str | None = None

    def attach_rollback_errors(self, errors: list[Exception]) -> None:
        self.rollback_errors.extend(errors)
        for error in errors:
            self.add_note(f"rollback: {error}")

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "category": self.category,
            "message": self.message,
        }
        kind = getattr(self, "kind", None)
        if kind is not None:
            payload["kind"] = kind
        if self.state is not None:
            payload["state"] = self.state
        if self.rollback_errors:
            payload["rollback_errors"] = [str(error) for error in self.rollback_errors]
        return payload


class UnrecognizedSourceError(SkillSyncError):
    category = "unrecognized_source"

    def __init__(self, raw: str, reason: str | None = None) -> None:
        detail = reason or "expected a local directory, owner/repo[/path] or a GitHub URL"
        super().__init__(f"Unrecognized source '{raw}': {detail}")
        self.raw = raw


class RejectedSourceError(SkillSyncError):
    """A remote source string failed a safety rule."""

    category = "rejected_source"

    def __init__(self, raw: str, reason: str) -> None:
        super().__init__(f"Rejected source {raw!r}: {reason}")
        self.raw = raw
        self.reason = reason


class DirectoryNotFoundError(SkillSyncError):
    category = "directory_not_found"

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Directory not found: {path}")
        self.path = Path(path)


class ValidationError(SkillSyncError):
    category = "validation_error"

    def __init__(self, reason: str, *, kind: ValidationKind) -> None:
        super().__init__(f"Validation failed: {reason}")
        self.reason = reason
        self.kind = kind


class NoAgentsSelectedError(ValidationError):
    def __init__(self, reason: str = "no agents selected") -> None:
        super().__init__(reason, kind="no_agents_selected")


class UnknownAgentError(ValidationError):
    def __init__(self, agent_id: str, known: list[str]) -> None:
        valid = ", ".join(known) if known else "none configured"
        super().__init__(f"unknown agent '{agent_id}' (valid agents: {valid})", kind="unknown_agent")
        self.agent_id = agent_id


class InvalidSkillMdError(SkillSyncError):
    category = "invalid_skill_md"

    def __init__(self, path: Path, reason: str, *, kind: InvalidSkillMdKind) -> None:
        super().__init__(f"Invalid SKILL.md in {path}: {reason}")
        self.path = path
        self.reason = reason
        self.kind = kind


_ALREADY_EXISTS_HINTS: dict[str, str] = {
    "in_repository": "remove it first",
    "physical_conflict": "use `adopt` to bring it under management, or rerun with --force",
    "already_linked": "use `sync` to update it, or rerun with --force",
}


class AlreadyExistsError(SkillSyncError):
    category = "already_exists"

    def __init__(
        self,
        name: str,
        path: Path,
        *,
        kind: AlreadyExistsKind,
        agent_id: str | None = None,
    ) -> None:
        where = "in the repository" if agent_id is None else f"for agent '{agent_id}'"
        super().__init__(
            f"Skill '{name}' already exists {where} at {path} ({_ALREADY_EXISTS_HINTS[kind]})"
        )
        self.name = name
        self.path = path
        self.kind = kind
        self.agent_id = agent_id


class SymlinkNotAllowedError(SkillSyncError):
    category = "symlink_not_allowed"

    def __init__(self, path: Path) -> None:
        super().__init__(f"Symlinks are not allowed in skill sources: {path}")
        self.path = path


class GitError(SkillSyncError):
    category = "git_error"

    def __init__(self, reason: str, *, kind: GitErrorKind, detail: str | None = None) -> None:
        message = f"Git error: {reason}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.reason = reason
        self.kind = kind
        self.detail = detail


class PathTraversalError(SkillSyncError):
    category = "path_traversal"

    def __init__(self, path: str) -> None:
        super().__init__(f"Path traversal detected: {path}")
        self.path = path


class PermissionDeniedError(SkillSyncError):
    category = "permission_denied"

    def __init__(self, operation: str, path: Path) -> None:
        super().__init__(f"Permission denied: {operation} on {path}")
        self.operation = operation
        self.path = path


class SymlinkError(SkillSyncError):
    category = "symlink_error"

    def __init__(self, reason: str, path: Path) -> None:
        super().__init__(f"Symlink error: {reason} ({path})")
        self.reason = reason
        self.path = path


class ConfigError(SkillSyncError):
    category = "config_error"

    def __init__(self, reason: str, path: Path | None = None) -> None:
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Configuration error{where}: {reason}")
        self.reason = reason
        self.path = path


class RollbackError(SkillSyncError):
    """A single undo action that could not be completed."""

    category = "rollback_error"

    def __init__(self, action: str, reason: str) -> None:
        super().__init__(f"could not undo {action}: {reason}")
        self.action = action
        self.reason = reason


def mutation_error(exc: OSError, *, operation: str, path: Path) -> SkillSyncError:
    """Map an ``OSError`` raised while mutating the filesystem to a categorized error."""
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(operation, path)
    return SymlinkError(f"{operation} failed: {exc.strerror or exc}", path)
