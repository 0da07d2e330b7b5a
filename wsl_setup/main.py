from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

import yaml
from rich.table import Table

from .checkpoint_store import CheckpointStore
from .config import SetupConfig, load_config
from .context import StepContext
from .errors import SetupError
from .lib.env import Paths
from .lib.fetch import Fetcher
from .lib.prompt import ask_choice, is_interactive
from .lib.sudo import CredentialSession
from .logging_utils import configure_logging, console, latest_log, log_success
from .orchestrator import Orchestrator, render_run
from .pipeline import Step
from .preflight import check_environment
from .steps import (
    AptReposStep,
    BackupStep,
    CloneReposStep,
    ContainersStep,
    FinalStep,
    FzfStep,
    GoEnvStep,
    K8sToolsStep,
    NodejsEnvStep,
    PackagesStep,
    PythonEnvStep,
    ShellStep,
    SshGpgStep,
    SshValidateStep,
    SystemdEnableStep,
    SystemUpdateStep,
    TmuxStep,
)
from .verifier import Verifier, default_probes, render_report

logger = logging.getLogger(__name__)

RUN_MODES = ("full", "interactive", "resume", "orchestrated")

MENU = {
    "1": ("full", "Full installation"),
    "2": ("interactive", "Interactive installation (confirm each step)"),
    "3": ("resume", "Resume after interruption"),
    "4": ("verify", "Verify installation"),
    "5": ("check", "Check prerequisites"),
    "6": ("show_log", "Show latest log"),
    "7": ("reset", "Reset all checkpoints"),
    "0": ("quit", "Quit"),
}


def build_steps() -> List[Step]:
    return [
        SystemdEnableStep(),
        BackupStep(),
        SystemUpdateStep(),
        AptReposStep(),
        PackagesStep(),
        FzfStep(),
        ShellStep(),
        PythonEnvStep(),
        NodejsEnvStep(),
        GoEnvStep(),
        ContainersStep(),
        K8sToolsStep(),
        TmuxStep(),
        SshGpgStep(),
        SshValidateStep(),
        CloneReposStep(),
        FinalStep(),
    ]


def build_context(cfg: SetupConfig, paths: Paths) -> StepContext:
    return StepContext(
        config=cfg,
        checkpoints=CheckpointStore(paths.checkpoint_file),
        fetcher=Fetcher(),
        paths=paths,
    )


def _raise_exit(signum: int, frame: object) -> None:
    raise SystemExit(128 + signum)


def _install_signal_handlers() -> None:
    # Turn termination into SystemExit so `with` blocks and atexit run.
    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _raise_exit)


def _show_menu() -> str:
    console.rule("[cyan]WSL Ubuntu Development Environment Setup[/cyan]", style="cyan")
    for key, (_, label) in MENU.items():
        console.print(f"  [bold]{key})[/bold] {label}")
    choice = ask_choice("Choice", list(MENU), default="0")
    return MENU[choice][0]


def _selected_mode(args: argparse.Namespace) -> Optional[str]:
    for mode in (*RUN_MODES, "check", "verify", "list_steps", "show_log"):
        if getattr(args, mode):
            return mode
    if args.reset is not None:
        return "reset"
    return None


def _reset(paths: Paths, target: Optional[str]) -> int:
    store = CheckpointStore(paths.checkpoint_file)
    if target in (None, "all"):
        store.reset_all()
        log_success(logger, "All checkpoints cleared")
        return 0

    known = {s.step_id for s in build_steps()}
    if target not in known:
        logger.error("Unknown step %r (known: %s)", target, ", ".join(sorted(known)))
        return 1
    store.reset(target)
    return 0


def _list_steps(paths: Paths) -> int:
    store = CheckpointStore(paths.checkpoint_file)
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Step")
    table.add_column("Status")
    table.add_column("sudo")
    table.add_column("Requires")
    for i, step in enumerate(build_steps(), start=1):
        done = store.is_completed(step.step_id)
        table.add_row(
            str(i),
            step.step_id,
            "[green]completed[/]" if done else "[yellow]pending[/]",
            "yes" if step.needs_sudo else "",
            ", ".join(step.requires),
        )
    console.print(table)
    return 0


def _show_log(paths: Paths, lines: int = 200) -> int:
    log = latest_log(str(paths.log_dir))
    if log is None:
        logger.warning("No log files found in %s", paths.log_dir)
        return 1
    console.rule(str(log))
    text = log.read_text(encoding="utf-8", errors="replace").splitlines()
    console.print("\n".join(text[-lines:]), markup=False, highlight=False)
    return 0


def _check(_: Paths) -> int:
    return 0 if check_environment().ok else 1


def _verify(paths: Paths) -> int:
    report = Verifier(default_probes(paths.home)).verify()
    render_report(report)
    return 0 if report.ok else 1


def _install(mode: str, cfg: SetupConfig, paths: Paths, *, force: bool) -> int:
    ctx = build_context(cfg, paths)
    # A dry run never elevates.
    session = None if cfg.dry_run else CredentialSession()
    orch = Orchestrator(
        build_steps(),
        ctx,
        session=session,
        preflight=check_environment,
        verifier=Verifier(default_probes(paths.home)),
    )

    with ctx.fetcher:
        if mode == "interactive":
            report = orch.run_interactive(force=force)
        elif mode == "orchestrated":
            report = orch.run_orchestrated(cfg, force=force)
        else:
            report = orch.run_full(force=force)

    render_run(report)
    if report.verification is not None:
        render_report(report.verification)
    if report.ok:
        log_success(logger, "Installation complete. Restart your terminal (or run 'exec zsh').")
        return 0
    logger.error("Setup finished with failures: %s", ", ".join(report.failed_steps) or "verification")
    return 1


def _dispatch(mode: str, args: argparse.Namespace, cfg: SetupConfig, paths: Paths) -> int:
    if mode in RUN_MODES:
        return _install(mode, cfg, paths, force=args.force)
    if mode == "reset":
        return _reset(paths, args.reset)
    handlers = {
        "check": _check,
        "verify": _verify,
        "list_steps": _list_steps,
        "show_log": _show_log,
    }
    return handlers[mode](paths)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="wsl-setup",
        description="Idempotent, resumable provisioning of an Ubuntu-on-WSL2 development environment.",
    )
    modes = p.add_mutually_exclusive_group()
    modes.add_argument("--full", action="store_true", help="Unattended full installation")
    modes.add_argument("--interactive", action="store_true", help="Confirm each step")
    modes.add_argument("--resume", action="store_true", help="Resume an interrupted installation")
    modes.add_argument("--orchestrated", action="store_true", help="Non-interactive run driven by the Windows launcher")
    modes.add_argument("--check", action="store_true", help="Check prerequisites only")
    modes.add_argument("--verify", action="store_true", help="Verify the installation only")
    modes.add_argument(
        "--reset",
        nargs="?",
        const="all",
        default=None,
        metavar="STEP",
        help="Clear one checkpoint, or all of them",
    )
    modes.add_argument("--list-steps", action="store_true", help="List steps and their completion state")
    modes.add_argument("--show-log", action="store_true", help="Show the latest session log")
    p.add_argument("--config", default=None, help="Path to a YAML config file")
    p.add_argument("--log-dir", default=None, help="Directory for session logs and the checkpoint file")
    p.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    p.add_argument("--dry-run", action="store_true", help="Log commands without running them")

    args = p.parse_args(argv)

    if os.geteuid() == 0:
        console.print("[bold red]Do not run this script as root; it uses sudo when needed.[/]")
        return 1

    mode = _selected_mode(args)
    if mode is None:
        if not is_interactive():
            p.print_usage(sys.stderr)
            return 2
        mode = _show_menu()
        if mode == "quit":
            return 0

    overrides = {"log_dir": args.log_dir, "dry_run": True if args.dry_run else None}
    try:
        cfg = load_config(config_path=args.config, overrides=overrides)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[bold red]Invalid configuration:[/] {e}")
        return 1

    paths = Paths.for_home(log_dir=cfg.log_dir)
    configure_logging(str(paths.log_dir))
    _install_signal_handlers()

    try:
        return _dispatch(mode, args, cfg, paths)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except SetupError as e:
        logger.error("%s", e)
        return 1
