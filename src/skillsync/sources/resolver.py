from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from skillsync.errors import DirectoryNotFoundError, ValidationError
from skillsync.sources.path_safety import ParsedRemote, validate_remote_source

SourceKind = Literal["local", "remote"]

_PATH_PREFIXES = ("./", "../", "/", "~", ".\\", "..\\")


@dataclass(frozen=True)
class SkillSource:
    kind: SourceKind
    raw: str
    path: Path | None = None
    remote: ParsedRemote | None = None

    @property
    def owner(self) -> str | None:
        return self.remote.owner if self.remote else None

    @property
    def repo(self) -> str | None:
        return self.remote.repo if self.remote else None

    @property
    def subdir(self) -> str | None:
        return self.remote.subdir if self.remote else None


def _looks_like_path(raw: str) -> bool:
    return raw in {".", ".."} or raw.startswith(_PATH_PREFIXES)


def _local_candidate(raw: str, cwd: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = (cwd or Path.cwd()) / candidate
    return candidate


def resolve_source(raw: str, *, cwd: Path | None = None) -> SkillSource:
    """Classify ``raw`` as a local directory or a remote GitHub source.

    An existing directory always wins. Strings that are clearly paths but do
    not name a directory fail here instead of being sent to ``git``.
    """
    if raw and "\0" not in raw:
        candidate = _local_candidate(raw, cwd)
        if candidate.is_dir():
            return SkillSource(kind="local", raw=raw, path=candidate.resolve())
        if _looks_like_path(raw) or candidate.is_file():
            if candidate.exists():
                raise ValidationError(
                    f"source path is not a directory: {candidate}",
                    kind="not_a_directory",
                )
            raise DirectoryNotFoundError(candidate)

    remote = validate_remote_source(raw)
    return SkillSource(kind="remote", raw=raw, remote=remote)
