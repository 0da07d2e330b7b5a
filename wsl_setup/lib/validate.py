"""Validation for values that end up in shell config, git config or commands.

Identity fields and the repository list come from the environment or from
the launcher, so they are checked here before any code path interpolates
them. Injection attempts are logged at SECURITY level.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

from ..errors import ValidationError
from ..logging_utils import log_security

if TYPE_CHECKING:
    from ..config import SetupConfig

logger = logging.getLogger(__name__)

SHELL_METACHARACTERS = frozenset("$`|;&><()[]{}\\")
MAX_FIELD_LENGTH = 256
EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class RepoSpec:
    name: str
    url: str
    path: str

    def expanded_path(self, home: Path) -> Path:
        if self.path == "~":
            return home
        if self.path.startswith("~/"):
            return home / self.path[2:]
        return Path(self.path)


def _normalized(path: Path, home: Path) -> Tuple[Path, Path]:
    root = Path(os.path.normpath(str(home)))
    return Path(os.path.normpath(os.path.join(str(root), str(path)))), root


def is_below(path: Path, home: Path) -> bool:
    """True if ``path`` is strictly inside ``home`` once normalized."""

    target, root = _normalized(path, home)
    return root in target.parents


def contains_home(path: Path, home: Path) -> bool:
    """True for ``home`` itself, ``/`` and every directory above ``home``."""

    target, root = _normalized(path, home)
    return target == root or target in root.parents


def _reject_unsafe(field: str, value: str, *, what: str) -> None:
    bad = sorted({c for c in value if c in SHELL_METACHARACTERS})
    if bad:
        log_security(logger, "Blocked %s with shell metacharacters %s", what, "".join(bad))
        raise ValidationError(field, "contains shell metacharacters", security=True)
    if _CONTROL_RE.search(value):
        log_security(logger, "Blocked %s with control characters", what)
        raise ValidationError(field, "contains control characters", security=True)
    if ".." in value:
        log_security(logger, "Blocked %s with path traversal", what)
        raise ValidationError(field, "contains path traversal sequence '..'", security=True)


def validate_field(name: str, value: str, is_email: bool = False) -> str:
    """Validate a user-supplied field; returns the value unchanged."""

    if not value:
        logger.error("%s cannot be empty", name)
        raise ValidationError(name, "cannot be empty")

    _reject_unsafe(name, value, what=name)

    if is_email and not EMAIL_RE.match(value):
        logger.error("%s is not a valid email address: %s", name, value)
        raise ValidationError(name, "is not a valid email address")

    if len(value) > MAX_FIELD_LENGTH:
        logger.error("%s exceeds maximum length (%d characters)", name, MAX_FIELD_LENGTH)
        raise ValidationError(name, f"exceeds maximum length ({MAX_FIELD_LENGTH} characters)")

    return value


def validate_repo_spec(entry: str, home: Optional[Path] = None) -> RepoSpec:
    """Validate and parse one ``name:url:path`` entry.

    URLs may contain ':' themselves (``git@github.com:user/repo.git``), so the
    name is everything before the first colon and the path everything after
    the last one. The path may not be ``home`` or any directory above it.
    """

    if not entry or not entry.strip():
        raise ValidationError("REPO_LIST", "empty repository entry")

    _reject_unsafe("REPO_LIST", entry, what=f"repo entry {entry!r}")

    entry = entry.strip()
    if entry.count(":") < 2:
        raise ValidationError("REPO_LIST", f"expected name:url:path, got {entry!r}")

    name, rest = entry.split(":", 1)
    url, path = rest.rsplit(":", 1)
    name, url, path = name.strip(), url.strip(), path.strip()
    if not name or not url or not path:
        raise ValidationError("REPO_LIST", f"expected name:url:path, got {entry!r}")
    if "/" not in url and "@" not in url:
        raise ValidationError("REPO_LIST", f"repository URL has no host: {url!r}")

    spec = RepoSpec(name=name, url=url, path=path)
    home = home or Path.home()
    if contains_home(spec.expanded_path(home), home):
        logger.error("Refusing repository path %s: it is the home directory or above it", path)
        raise ValidationError("REPO_LIST", f"path {path!r} would replace the home directory")
    return spec


def parse_repo_list(raw: str, home: Optional[Path] = None) -> Tuple[List[RepoSpec], List[str]]:
    """Split a comma-separated repo list; invalid entries are collected, not raised."""

    specs: List[RepoSpec] = []
    rejected: List[str] = []
    for item in (raw or "").split(","):
        if not item.strip():
            continue
        try:
            specs.append(validate_repo_spec(item, home))
        except ValidationError as e:
            logger.error("Invalid repository entry: %s", e)
            rejected.append(item)
    return specs, rejected


def validate_identity(cfg: "SetupConfig") -> None:
    validate_field("USER_FULLNAME", cfg.full_name)
    validate_field("USER_EMAIL", cfg.email, is_email=True)
    validate_field("USER_GITHUB_EMAIL", cfg.github_email, is_email=True)
    validate_field("USER_GITLAB_EMAIL", cfg.gitlab_email, is_email=True)
