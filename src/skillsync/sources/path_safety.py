"""Input validation for remote skill sources.

Everything here is a pure string check: nothing touches the network or the
filesystem, so a rejected source never reaches ``git``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlsplit

from skillsync.errors import PathTraversalError, RejectedSourceError, UnrecognizedSourceError

ALLOWED_HOST = "github.com"

_OWNER_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]*$")
_REPO_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


@dataclass(frozen=True)
class ParsedRemote:
    owner: str
    repo: str
    subdir: str | None = None
    ref: str | None = None

    @property
    def clone_url(self) -> str:
        return f"https://{ALLOWED_HOST}/{self.owner}/{self.repo}.git"


def validate_subdirectory(path: str) -> str:
    """Return ``path`` normalised to ``a/b/c`` or raise ``PathTraversalError``."""
    if "\0" in path:
        raise PathTraversalError(path)
    if "\\" in path:
        raise PathTraversalError(path)
    if path.startswith("/"):
        raise PathTraversalError(path)

    parts = [part for part in path.split("/") if part not in {"", "."}]
    for part in parts:
        if ".." in part:
            raise PathTraversalError(path)
    return str(PurePosixPath(*parts)) if parts else ""


def _check_raw(raw: str) -> None:
    if raw.startswith("-"):
        raise RejectedSourceError(raw, "source cannot start with '-'")
    if "\0" in raw:
        raise RejectedSourceError(raw, "source contains a NUL character")
    if raw != raw.strip():
        raise RejectedSourceError(raw, "source cannot contain leading or trailing whitespace")
    if any(ch.isspace() for ch in raw):
        raise RejectedSourceError(raw, "source cannot contain whitespace")
    if raw.lower().startswith("file:"):
        raise RejectedSourceError(raw, "file:// sources are not allowed")


def _check_owner_repo(raw: str, owner: str, repo: str) -> None:
    if not owner:
        raise UnrecognizedSourceError(raw, "owner cannot be empty")
    if not repo:
        raise UnrecognizedSourceError(raw, "repository name cannot be empty")
    if ".." in owner or ".." in repo:
        raise PathTraversalError(raw)
    if not _OWNER_PATTERN.match(owner):
        raise UnrecognizedSourceError(raw, f"invalid owner '{owner}'")
    if not _REPO_PATTERN.match(repo) or repo in {".", ".."}:
        raise UnrecognizedSourceError(raw, f"invalid repository name '{repo}'")


def _subdir_from_parts(parts: list[str]) -> str | None:
    if not parts:
        return None
    subdir = validate_subdirectory("/".join(parts))
    return subdir or None


def _parse_url(raw: str) -> ParsedRemote:
    parsed = urlsplit(raw)
    scheme = parsed.scheme.lower()
    if scheme != "https":
        raise RejectedSourceError(raw, f"only https://{ALLOWED_HOST} URLs are supported")
    try:
        port = parsed.port
    except ValueError as exc:
        raise RejectedSourceError(raw, f"invalid port: {exc}") from exc
    if parsed.username or parsed.password or port:
        raise RejectedSourceError(raw, "credentials and ports are not allowed in source URLs")
    host = (parsed.hostname or "").lower()
    if host != ALLOWED_HOST:
        raise RejectedSourceError(raw, f"only https://{ALLOWED_HOST} URLs are supported")
    if parsed.query or parsed.fragment:
        raise RejectedSourceError(raw, "query strings and fragments are not allowed")

    parts = parsed.path.strip("/").split("/") if parsed.path.strip("/") else []
    if len(parts) < 2:
        raise UnrecognizedSourceError(raw, "GitHub URL must include owner/repo")

    owner, repo = parts[0], parts[1]
    rest = parts[2:]
    ref: str | None = None
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    elif len(rest) >= 2 and rest[0] in {"tree", "blob"}:
        ref = rest[1]
        if ref.startswith("-") or ".." in ref:
            raise RejectedSourceError(raw, f"invalid ref '{ref}'")
        rest = rest[2:]

    _check_owner_repo(raw, owner, repo)
    return ParsedRemote(owner=owner, repo=repo, subdir=_subdir_from_parts(rest), ref=ref)


def _parse_short_form(raw: str) -> ParsedRemote:
    if "/" not in raw:
        raise UnrecognizedSourceError(raw)
    if "://" in raw or ":" in raw.split("/", 1)[0]:
        raise RejectedSourceError(raw, f"only https://{ALLOWED_HOST} URLs are supported")
    parts = raw.split("/")
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    _check_owner_repo(raw, owner, repo)
    return ParsedRemote(owner=owner, repo=repo, subdir=_subdir_from_parts(parts[2:]))


def validate_remote_source(raw: str) -> ParsedRemote:
    """Validate and parse a remote source string.

    Accepted forms are ``owner/repo``, ``owner/repo/sub/dir`` and
    ``https://github.com/owner/repo[.git][/sub/dir]`` (including
    ``/tree/<ref>/sub/dir`` links copied from the GitHub UI).
    """
    _check_raw(raw)
    if "://" in raw:
        return _parse_url(raw)
    return _parse_short_form(raw)
