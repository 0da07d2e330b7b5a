from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH_VAR = "WSL_SETUP_CONFIG"

# field name -> environment variable
ENV_VARS: Dict[str, str] = {
    "full_name": "USER_FULLNAME",
    "email": "USER_EMAIL",
    "github_user": "USER_GITHUB",
    "github_email": "USER_GITHUB_EMAIL",
    "gitlab_user": "USER_GITLAB",
    "gitlab_email": "USER_GITLAB_EMAIL",
    "company_gitlab": "COMPANY_GITLAB",
    "company_jumphost": "COMPANY_JUMPHOST",
    "repo_list": "REPO_LIST",
    "skip_ssh_validate": "SKIP_SSH_VALIDATE",
    "skip_gpg_setup": "SKIP_GPG_SETUP",
    "docker_choice": "DOCKER_CHOICE",
    "log_dir": "WSL_SETUP_LOG_DIR",
    "dry_run": "WSL_SETUP_DRY_RUN",
}

_BOOL_FIELDS = {"skip_ssh_validate", "skip_gpg_setup", "dry_run"}
_DOCKER_ALIASES = {"1": "desktop", "2": "native", "3": "skip"}
_DOCKER_CHOICES = {"desktop", "native", "skip"}


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SetupConfig:
    full_name: str = "Your Name"
    email: str = "your.email@example.com"
    github_user: str = "yourusername"
    github_email: str = ""
    gitlab_user: str = "yourusername"
    gitlab_email: str = ""
    company_gitlab: str = ""
    company_jumphost: str = ""
    repo_list: str = ""
    skip_ssh_validate: bool = False
    skip_gpg_setup: bool = False
    docker_choice: Optional[str] = None
    log_dir: Optional[str] = None
    dry_run: bool = False

    def __post_init__(self) -> None:
        # Provider emails default to the primary one.
        if not self.github_email:
            object.__setattr__(self, "github_email", self.email)
        if not self.gitlab_email:
            object.__setattr__(self, "gitlab_email", self.email)
        if self.docker_choice is not None:
            choice = _DOCKER_ALIASES.get(str(self.docker_choice).strip(), str(self.docker_choice).strip().lower())
            if choice not in _DOCKER_CHOICES:
                raise ValueError(f"docker_choice must be one of {sorted(_DOCKER_CHOICES)}, got {self.docker_choice!r}")
            object.__setattr__(self, "docker_choice", choice)


def _normalize(raw: Mapping[str, Any], *, source: str) -> Dict[str, Any]:
    known = {f.name for f in dataclasses.fields(SetupConfig)}
    out: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown config key %r from %s", key, source)
            continue
        if value is None:
            continue
        out[key] = parse_bool(value) if key in _BOOL_FIELDS else str(value)
    return out


def load_config_file(path: str) -> Dict[str, Any]:
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("setup config must be YAML")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path} must contain a mapping/object")
    return _normalize(raw, source=str(p))


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> SetupConfig:
    """Build the immutable run configuration.

    Precedence (highest first): overrides, environment, YAML file, defaults.
    """

    env = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    path = config_path or env.get(CONFIG_PATH_VAR)
    if path:
        values.update(load_config_file(path))

    from_env = {field: env[var] for field, var in ENV_VARS.items() if env.get(var, "") != ""}
    values.update(_normalize(from_env, source="environment"))

    if overrides:
        values.update(_normalize(overrides, source="command line"))

    return SetupConfig(**values)
