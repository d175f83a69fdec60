"""Source resolution and fetching for skill installs."""

from skillsync.sources.resolver import SkillSource, resolve_source

__all__ = [
    "SkillSource",
    "resolve_source",
]
