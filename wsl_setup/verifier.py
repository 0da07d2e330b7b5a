"""Post-run health check.

Checkpoints record that an attempt succeeded, not that the artifact still
exists. The verifier ignores them and probes the command surface and the
filesystem directly.
"""

from __future__ import annotations

import enum
import glob
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from rich.table import Table

from .errors import SetupError
from .lib.command import CmdResult, run_cmd
from .logging_utils import console, log_success, section

logger = logging.getLogger(__name__)


class CheckState(str, enum.Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


@dataclass(frozen=True)
class Check:
    name: str
    state: CheckState
    detail: str = ""


@dataclass(frozen=True)
class CommandProbe:
    name: str
    required: bool = True
    # Alternative command names or absolute paths (globs allowed).
    fallbacks: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FileProbe:
    path: Path
    label: str
    required: bool = True


@dataclass(frozen=True)
class DirProbe:
    path: Path
    label: str
    required: bool = False


Probe = Union[CommandProbe, FileProbe, DirProbe]


@dataclass
class VerificationReport:
    checks: List[Check] = field(default_factory=list)

    def _count(self, state: CheckState) -> int:
        return sum(1 for c in self.checks if c.state is state)

    @property
    def passed(self) -> int:
        return self._count(CheckState.PASS)

    @property
    def warned(self) -> int:
        return self._count(CheckState.WARN)

    @property
    def failed(self) -> int:
        return self._count(CheckState.FAIL)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def failed_names(self) -> List[str]:
        return [c.name for c in self.checks if c.state is CheckState.FAIL]


def default_probes(home: Path) -> List[Probe]:
    nvm_bin = str(home / ".nvm/versions/node/*/bin")
    required_cmds = [
        CommandProbe("zsh"),
        CommandProbe("git"),
        CommandProbe("python3"),
        CommandProbe("node", fallbacks=(f"{nvm_bin}/node",)),
        CommandProbe("npm", fallbacks=(f"{nvm_bin}/npm",)),
        CommandProbe("go", fallbacks=("/usr/local/go/bin/go",)),
        CommandProbe("fzf", fallbacks=(str(home / ".fzf/bin/fzf"),)),
        # Ubuntu renames these two.
        CommandProbe("bat", fallbacks=("batcat",)),
        CommandProbe("fd", fallbacks=("fdfind",)),
        CommandProbe("rg"),
        CommandProbe("zoxide"),
        CommandProbe("btop"),
    ]
    optional_cmds = [
        CommandProbe("docker", required=False),
        CommandProbe("kubectl", required=False, fallbacks=(str(home / ".local/bin/kubectl"),)),
        CommandProbe("helm", required=False),
        CommandProbe("pwsh", required=False),
        CommandProbe("uv", required=False, fallbacks=(str(home / ".local/bin/uv"),)),
    ]
    files = [
        FileProbe(home / ".zshrc", "Zsh configuration"),
        FileProbe(home / ".tmux.conf", "Tmux configuration"),
        FileProbe(home / ".gitconfig", "Git configuration"),
        FileProbe(home / ".ssh/config", "SSH configuration"),
    ]
    dirs = [
        DirProbe(home / "projects", "Projects directory"),
        DirProbe(home / ".fzf", "fzf installation"),
        DirProbe(home / ".nvm", "NVM installation"),
        DirProbe(home / ".pyenv", "Pyenv installation"),
    ]
    return [*required_cmds, *optional_cmds, *files, *dirs]


class Verifier:
    def __init__(
        self,
        probes: Sequence[Probe],
        *,
        which: Callable[[str], Optional[str]] = shutil.which,
        runner: Callable[..., CmdResult] = run_cmd,
    ) -> None:
        self.probes = list(probes)
        self._which = which
        self._runner = runner

    def _resolve(self, probe: CommandProbe) -> Optional[str]:
        for candidate in (probe.name, *probe.fallbacks):
            if "/" in candidate:
                matches = sorted(glob.glob(candidate))
                if matches:
                    return matches[-1]
            else:
                found = self._which(candidate)
                if found:
                    return found
        return None

    def _version(self, exe: str) -> str:
        try:
            r = self._runner([exe, "--version"], check=False, timeout=15)
        except (OSError, SetupError, subprocess.SubprocessError) as e:
            logger.debug("version probe for %s failed: %s", exe, e)
            return ""
        out = (r.stdout or r.stderr or "").strip()
        return out.splitlines()[0][:50] if out else ""

    def _check_command(self, probe: CommandProbe) -> Check:
        exe = self._resolve(probe)
        if exe is None:
            state = CheckState.FAIL if probe.required else CheckState.WARN
            return Check(probe.name, state, "NOT FOUND" if probe.required else "not installed (optional)")
        return Check(probe.name, CheckState.PASS, self._version(exe) or exe)

    @staticmethod
    def _check_path(probe: Union[FileProbe, DirProbe]) -> Check:
        present = probe.path.is_file() if isinstance(probe, FileProbe) else probe.path.is_dir()
        if present:
            return Check(probe.label, CheckState.PASS, str(probe.path))
        state = CheckState.FAIL if probe.required else CheckState.WARN
        return Check(probe.label, state, f"NOT FOUND at {probe.path}")

    def verify(self) -> VerificationReport:
        report = VerificationReport()
        for probe in self.probes:
            if isinstance(probe, CommandProbe):
                check = self._check_command(probe)
            else:
                check = self._check_path(probe)
            report.checks.append(check)

            if check.state is CheckState.PASS:
                log_success(logger, "%s: %s", check.name, check.detail)
            elif check.state is CheckState.WARN:
                logger.warning("%s: %s", check.name, check.detail)
            else:
                logger.error("%s: %s", check.name, check.detail)

        logger.info(
            "Verification: passed=%d warnings=%d failed=%d", report.passed, report.warned, report.failed
        )
        return report


def render_report(report: VerificationReport) -> None:
    section("Verification summary")
    styles = {CheckState.PASS: "green", CheckState.WARN: "yellow", CheckState.FAIL: "bold red"}
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for c in report.checks:
        table.add_row(c.name, f"[{styles[c.state]}]{c.state.value.upper()}[/]", c.detail)
    console.print(table)
    console.print(
        f"[green]Passed: {report.passed}[/]  "
        f"[yellow]Warnings: {report.warned}[/]  "
        f"[red]Failed: {report.failed}[/]"
    )
    if report.ok:
        log_success(logger, "All essential verifications passed!")
    else:
        logger.error("Some verifications failed. Run the setup again to install missing components.")
