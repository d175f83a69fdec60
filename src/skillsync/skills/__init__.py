"""Skill validation, agent targeting and transactional installation."""

from skillsync.skills.manifest import StagedSkill, validate_skill_dir

__all__ = [
    "StagedSkill",
    "validate_skill_dir",
]
