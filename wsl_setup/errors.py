from __future__ import annotations

from typing import Sequence


class SetupError(RuntimeError):
    pass


class PreconditionError(SetupError):
    """Environment does not meet the prerequisites; nothing was run."""


class ElevationError(SetupError):
    """sudo could not be acquired (bad secret, declined, or non-interactive)."""


class StepGraphError(SetupError):
    pass


class CommandError(SetupError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}\n{stderr}".rstrip())


class ValidationError(SetupError, ValueError):
    def __init__(self, field: str, reason: str, *, security: bool = False) -> None:
        self.field = field
        self.reason = reason
        self.security = security
        super().__init__(f"{field}: {reason}")


class FetchError(SetupError):
    def __init__(self, url: str, attempts: int, reason: str = "") -> None:
        self.url = url
        self.attempts = attempts
        self.reason = reason
        msg = f"Download failed after {attempts} attempt(s): {url}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class InsecureURLError(FetchError):
    def __init__(self, url: str) -> None:
        super().__init__(url, 0, "only https:// URLs are allowed")


class VerifyError(SetupError):
    pass
