from __future__ import annotations

import sys

from rich.prompt import Confirm, Prompt

from ..logging_utils import console


def is_interactive() -> bool:
    return sys.stdin.isatty()


def ask_yes_no(question: str, default: bool = False) -> bool:
    """Yes/no question; answers ``default`` without asking when not on a TTY."""

    if not is_interactive():
        return default
    return Confirm.ask(question, default=default, console=console)


def ask_choice(question: str, choices: list[str], default: str) -> str:
    if not is_interactive():
        return default
    return Prompt.ask(question, choices=choices, default=default, console=console)


def wait_for_enter(message: str) -> None:
    if is_interactive():
        Prompt.ask(message, default="", show_default=False, console=console)
