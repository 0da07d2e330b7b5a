from __future__ import annotations

import logging
import platform
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .lib.net import is_online
from .logging_utils import log_success, section

logger = logging.getLogger(__name__)

MIN_FREE_GB = 25
SUPPORTED_UBUNTU = {"22.04", "24.04"}
SUPPORTED_ARCH = {"x86_64", "aarch64"}


@dataclass
class PreflightReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    facts: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def error(self, msg: str) -> None:
        logger.error(msg)
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        logger.warning(msg)
        self.warnings.append(msg)


def _read(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def parse_os_release(text: str) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for line in text.splitlines():
        if "=" not in line or line.lstrip().startswith("#"):
            continue
        k, v = line.split("=", 1)
        out[k.strip()] = v.strip().strip('"')
    return out


def _free_gb(path: Path) -> Optional[int]:
    try:
        return shutil.disk_usage(path).free // (1024**3)
    except OSError:
        return None


def check_environment(
    *,
    proc_version: Path = Path("/proc/version"),
    os_release: Path = Path("/etc/os-release"),
    disk_paths: tuple = (Path("/mnt/c"), Path("/")),
    machine: Callable[[], str] = platform.machine,
    online: Callable[[], bool] = is_online,
    which: Callable[[str], Optional[str]] = shutil.which,
    free_gb: Callable[[Path], Optional[int]] = _free_gb,
    systemd_marker: Path = Path("/run/systemd/system"),
) -> PreflightReport:
    """Check that this host can be provisioned. Errors are fatal, warnings are not."""

    section("WSL Environment Verification")
    report = PreflightReport()

    version = _read(proc_version) or ""
    if "microsoft" in version.lower():
        log_success(logger, "WSL environment detected")
        report.facts["wsl"] = True
    else:
        report.error("This setup must be run in WSL (Windows Subsystem for Linux)")
        report.facts["wsl"] = False

    release_text = _read(os_release)
    if release_text is None:
        report.error("Unable to detect Ubuntu version")
    else:
        release = parse_os_release(release_text)
        version_id = release.get("VERSION_ID", "")
        report.facts["ubuntu_version"] = version_id
        if version_id in SUPPORTED_UBUNTU:
            log_success(logger, "Ubuntu %s LTS detected", version_id)
        else:
            report.warn(f"Ubuntu {version_id or 'unknown'} detected (recommended: 22.04 or 24.04)")

    arch = machine()
    report.facts["arch"] = arch
    if arch in SUPPORTED_ARCH:
        log_success(logger, "Supported architecture: %s", arch)
    else:
        report.warn(f"Untested architecture: {arch}")

    # WSL2's ext4.vhdx grows dynamically, so the Windows drive is what matters.
    for p in disk_paths:
        free = free_gb(p)
        if free is None:
            continue
        report.facts["free_gb"] = free
        if free >= MIN_FREE_GB:
            log_success(logger, "Disk space sufficient: %sGB available on %s", free, p)
        else:
            report.error(f"Insufficient disk space: {free}GB available on {p} ({MIN_FREE_GB}GB minimum required)")
        break
    else:
        report.error("Could not determine available disk space")

    if online():
        log_success(logger, "Internet connection active")
    else:
        report.error("No internet connection")

    has_systemd = which("systemctl") is not None and systemd_marker.is_dir()
    report.facts["has_systemd"] = has_systemd
    if has_systemd:
        log_success(logger, "systemd enabled")
    else:
        report.warn("systemd not enabled (will be configured)")

    if not report.ok:
        logger.error("Prerequisites not met. Please fix the errors above.")
    return report
