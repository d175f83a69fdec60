"""SKILL.md parsing and validation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from skillsync.errors import InvalidSkillMdError, PathTraversalError, ValidationError

MANIFEST_FILENAME = "SKILL.md"
FRONTMATTER_MARKER = "---"
OPTIONAL_STRING_FIELDS = ("description", "version", "author", "license")

_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")


@dataclass(frozen=True)
class StagedSkill:
    """A validated skill directory ready to be installed."""

    directory_path: Path
    name: str
    manifest_fields: dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> str | None:
        value = self.manifest_fields.get("description")
        return value if isinstance(value, str) else None


def extract_frontmatter(content: str, path: Path) -> str:
    """Return the text between the leading pair of ``---`` markers."""
    stripped = content.lstrip("\ufeff")
    lines = stripped.splitlines()
    index = 0
    while index < len(lines) and not lines[index].strip():
        index += 1
    if index >= len(lines) or lines[index].strip() != FRONTMATTER_MARKER:
        raise InvalidSkillMdError(
            path,
            "missing frontmatter (file must start with '---')",
            kind="malformed",
        )

    for end in range(index + 1, len(lines)):
        if lines[end].strip() == FRONTMATTER_MARKER:
            return "\n".join(lines[index + 1 : end])

    raise InvalidSkillMdError(
        path,
        "malformed frontmatter (closing '---' not found)",
        kind="malformed",
    )


def validate_skill_name(name: str) -> None:
    if name in {".", ".."} or "/" in name or "\\" in name or "\0" in name:
        raise PathTraversalError(name)
    if not _NAME_PATTERN.match(name):
        raise ValidationError(
            f"invalid skill name '{name}': must start with a lowercase letter or digit, "
            "contain only lowercase letters, digits, hyphens and underscores, "
            "and be 1-64 characters",
            kind="invalid_name",
        )


def parse_skill_md(path: Path) -> dict[str, Any]:
    """Parse the frontmatter of ``path`` and return its fields.

    The returned mapping always carries a validated ``name``.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidSkillMdError(path, f"not valid UTF-8: {exc}", kind="malformed") from exc
    except OSError as exc:
        raise InvalidSkillMdError(path, f"unreadable: {exc}", kind="missing") from exc

    block = extract_frontmatter(content, path)
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise InvalidSkillMdError(path, f"invalid YAML frontmatter: {exc}", kind="malformed") from exc

    if not isinstance(data, dict):
        raise InvalidSkillMdError(path, "frontmatter must be a mapping", kind="malformed")

    name = data.get("name")
    if name is None:
        raise InvalidSkillMdError(path, "missing required field 'name'", kind="malformed")
    if not isinstance(name, str):
        raise InvalidSkillMdError(path, "field 'name' must be a string", kind="malformed")
    name = name.strip()
    if not name:
        raise InvalidSkillMdError(path, "field 'name' cannot be empty", kind="malformed")

    for key in OPTIONAL_STRING_FIELDS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise InvalidSkillMdError(path, f"field '{key}' must be a string", kind="malformed")

    validate_skill_name(name)
    return {**data, "name": name}


def validate_skill_dir(staged_dir: Path) -> StagedSkill:
    """Check that ``staged_dir`` holds a usable skill and return its identity."""
    manifest_path = staged_dir / MANIFEST_FILENAME
    if not manifest_path.is_file():
        raise InvalidSkillMdError(
            manifest_path,
            f"{MANIFEST_FILENAME} not found at the root of {staged_dir}",
            kind="missing",
        )

    fields = parse_skill_md(manifest_path)
    return StagedSkill(directory_path=staged_dir, name=fields["name"], manifest_fields=fields)
