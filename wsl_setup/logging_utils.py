from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

DEFAULT_LOG_DIR = "~/.wsl_ubuntu_setup_logs"

AUDIT = 22
SUCCESS = 25
SECURITY = 45

logging.addLevelName(AUDIT, "AUDIT")
logging.addLevelName(SUCCESS, "SUCCESS")
logging.addLevelName(SECURITY, "SECURITY")

console = Console(
    theme=Theme(
        {
            "logging.level.debug": "dim",
            "logging.level.info": "blue",
            "logging.level.audit": "magenta",
            "logging.level.success": "bold green",
            "logging.level.warning": "yellow",
            "logging.level.error": "bold red",
            "logging.level.security": "bold white on red",
            "logging.level.critical": "bold white on red",
        }
    )
)


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    logger.log(SUCCESS, msg, *args)


def log_audit(logger: logging.Logger, msg: str, *args: object) -> None:
    logger.log(AUDIT, msg, *args)


def log_security(logger: logging.Logger, msg: str, *args: object) -> None:
    logger.log(SECURITY, msg, *args)


def session_log_name(now: Optional[float] = None) -> str:
    return time.strftime("setup_%Y%m%d_%H%M%S.log", time.localtime(now))


def configure_logging(
    log_dir: str = DEFAULT_LOG_DIR,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging for one setup session.

    Every invocation gets its own file (``setup_YYYYMMDD_HHMMSS.log``) under
    ``log_dir``. If the directory cannot be created or written, we fall back
    to a file in the current working directory and keep going.

    Returns the actual file path being used.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(root, "_wsl_setup_configured", False):
        return getattr(root, "_wsl_setup_log_path")

    name = session_log_name()
    requested = Path(log_dir).expanduser() / name

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    try:
        requested.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(requested, encoding="utf-8")
        chosen_path = str(requested)
    except OSError:
        fallback = Path.cwd() / name
        file_handler = logging.FileHandler(fallback, encoding="utf-8")
        chosen_path = str(fallback)

    # The file keeps command output (DEBUG); the console stays at `level`.
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        rich_handler = RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=True)
        rich_handler.setLevel(level)
        root.addHandler(rich_handler)

    setattr(root, "_wsl_setup_configured", True)
    setattr(root, "_wsl_setup_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging initialized (requested=%s, actual=%s)", requested, chosen_path
    )
    return chosen_path


def latest_log(log_dir: str = DEFAULT_LOG_DIR) -> Optional[Path]:
    d = Path(log_dir).expanduser()
    if not d.is_dir():
        return None
    logs = sorted(d.glob("setup_*.log"))
    return logs[-1] if logs else None


def section(title: str) -> None:
    console.rule(f"[cyan]{title}[/cyan]", style="cyan")
    logging.getLogger(__name__).info("Starting: %s", title)
