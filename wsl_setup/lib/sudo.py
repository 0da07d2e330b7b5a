"""sudo credential session.

Elevation is acquired once near process start and kept warm by a keeper
thread until the session is released. ``release()`` runs from the
``with`` block, and from ``atexit`` as a backstop.
"""

from __future__ import annotations

import atexit
import enum
import logging
import os
import subprocess
import sys
import threading
from typing import Callable, MutableMapping, Optional, Sequence

from ..errors import ElevationError
from ..logging_utils import log_success

logger = logging.getLogger(__name__)

SECRET_VAR = "SUDO_PASSWORD"
KEEPALIVE_INTERVAL = 50.0

# (argv, stdin) -> returncode
Probe = Callable[[Sequence[str], Optional[str]], int]


class AcquireMethod(str, enum.Enum):
    CACHED = "cached"
    SECRET = "secret"
    PROMPT = "prompt"


def _sudo_probe(argv: Sequence[str], input_text: Optional[str]) -> int:
    p = subprocess.run(
        list(argv),
        input=input_text,
        text=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )
    return p.returncode


def _sudo_prompt() -> int:
    # Inherit the terminal so sudo can ask for the password itself.
    return subprocess.run(["sudo", "-v"]).returncode


class CredentialSession:
    def __init__(
        self,
        *,
        environ: Optional[MutableMapping[str, str]] = None,
        probe: Probe = _sudo_probe,
        prompt: Callable[[], int] = _sudo_prompt,
        is_tty: Callable[[], bool] = lambda: sys.stdin.isatty(),
        interval: float = KEEPALIVE_INTERVAL,
        secret_var: str = SECRET_VAR,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._probe = probe
        self._prompt = prompt
        self._is_tty = is_tty
        self._interval = interval
        self._secret_var = secret_var

        self._method: Optional[AcquireMethod] = None
        self._stop = threading.Event()
        self._keeper: Optional[threading.Thread] = None
        self._atexit_registered = False

    @property
    def method(self) -> Optional[AcquireMethod]:
        return self._method

    @property
    def keeper_alive(self) -> bool:
        return self._keeper is not None and self._keeper.is_alive()

    def acquire(self) -> AcquireMethod:
        if self._method is not None:
            return self._method

        if self._probe(["sudo", "-n", "true"], None) == 0:
            log_success(logger, "Sudo credentials available (no prompt needed)")
            method = AcquireMethod.CACHED
        elif self._environ.get(self._secret_var):
            method = self._acquire_with_secret()
        else:
            # An empty variable is treated as unset.
            self._environ.pop(self._secret_var, None)
            method = self._acquire_interactively()

        self._method = method
        self._start_keeper()
        return method

    def _acquire_interactively(self) -> AcquireMethod:
        if not self._is_tty():
            logger.error("Non-interactive mode requires sudo access")
            raise ElevationError(
                "Non-interactive mode requires sudo access: set SUDO_PASSWORD, "
                "run the setup under sudo, or configure NOPASSWD in sudoers for this user"
            )
        logger.info("Sudo authentication required for installation")
        if self._prompt() != 0:
            logger.error("Sudo authentication failed")
            raise ElevationError("Sudo authentication failed")
        log_success(logger, "Sudo credentials cached")
        return AcquireMethod.PROMPT

    def _acquire_with_secret(self) -> AcquireMethod:
        # Erase from the environment before anything else can read it.
        secret = self._environ.pop(self._secret_var, "")
        logger.info("Validating provided sudo password...")
        try:
            rc = self._probe(["sudo", "-S", "-v"], secret + "\n")
        finally:
            del secret
        if rc != 0:
            # No fallback to a prompt: a rejected explicit secret is a config error.
            logger.error("Invalid sudo password")
            raise ElevationError(f"Invalid sudo password supplied via {self._secret_var}")
        log_success(logger, "Sudo credentials cached")
        return AcquireMethod.SECRET

    def _start_keeper(self) -> None:
        self._stop.clear()
        main = threading.main_thread()

        def keep_alive() -> None:
            while not self._stop.wait(self._interval):
                if not main.is_alive():
                    return
                self._probe(["sudo", "-n", "true"], None)

        self._keeper = threading.Thread(target=keep_alive, name="sudo-keeper", daemon=True)
        self._keeper.start()
        if not self._atexit_registered:
            atexit.register(self.release)
            self._atexit_registered = True
        logger.debug("sudo keeper started (interval=%ss)", self._interval)

    def release(self) -> None:
        self._stop.set()
        keeper = self._keeper
        if keeper is not None and keeper is not threading.current_thread():
            keeper.join(timeout=5)
        if keeper is not None:
            logger.debug("sudo keeper stopped")
        self._keeper = None
        self._method = None

    def __enter__(self) -> "CredentialSession":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
