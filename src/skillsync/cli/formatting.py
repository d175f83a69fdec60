"""Formatting helpers shared by the CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from skillsync.errors import GitError, SkillSyncError
from skillsync.ui.output_truncation import truncate_diagnostic

if TYPE_CHECKING:
    from skillsync.skills.engine import InstallResult
    from skillsync.skills.manifest import StagedSkill


def format_error_lines(error: SkillSyncError) -> list[str]:
    label = error.category
    kind = getattr(error, "kind", None)
    if kind:
        label = f"{label}/{kind}"

    if isinstance(error, GitError):
        lines = [f"{label}: Git error: {error.reason}"]
        if error.detail:
            lines.extend(f"  {line}" for line in truncate_diagnostic(error.detail).splitlines())
    else:
        lines = [f"{label}: {error.message}"]

    lines.extend(f"  rollback: {rollback}" for rollback in error.rollback_errors)
    return lines


def error_payload(error: SkillSyncError) -> dict[str, Any]:
    payload = error.to_dict()
    if isinstance(error, GitError) and error.detail:
        payload["detail"] = truncate_diagnostic(error.detail)
    return {"ok": False, "error": payload}


def install_payload(result: InstallResult) -> dict[str, Any]:
    return {
        "ok": True,
        "name": result.name,
        "source": result.source.raw,
        "source_kind": result.source.kind,
        "repo_path": str(result.repo_path),
        "links": [
            {
                "agent": link.agent_id,
                "path": str(link.link_path),
                "replaced": link.replaced,
            }
            for link in result.receipt.links
        ],
    }


def validate_payload(skill: StagedSkill) -> dict[str, Any]:
    fields = {
        key: value
        for key, value in skill.manifest_fields.items()
        if isinstance(value, (str, int, float, bool)) or value is None
    }
    return {
        "ok": True,
        "name": skill.name,
        "path": str(skill.directory_path),
        "fields": fields,
    }
