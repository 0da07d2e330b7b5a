from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)


def _check_step_id(step_id: str) -> str:
    if not step_id or not step_id.strip():
        raise ValueError("step_id must be a non-empty string")
    if "\n" in step_id or "\r" in step_id:
        raise ValueError(f"step_id must be a single line: {step_id!r}")
    return step_id.strip()


class CheckpointStore:
    """Append-only record of completed steps, one id per line.

    Lookups are exact line matches: marking ``shell_config`` never makes
    ``shell`` look completed.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def _lines(self) -> List[str]:
        if not self.path.exists():
            return []
        return [ln.strip() for ln in self.path.read_text(encoding="utf-8").splitlines()]

    def is_completed(self, step_id: str) -> bool:
        return _check_step_id(step_id) in self._lines()

    def completed_steps(self) -> List[str]:
        seen: List[str] = []
        for ln in self._lines():
            if ln and ln not in seen:
                seen.append(ln)
        return seen

    def mark_completed(self, step_id: str) -> None:
        sid = _check_step_id(step_id)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Durable before the next step begins.
        with self.path.open("a", encoding="utf-8") as f:
            f.write(sid + "\n")
            f.flush()
            os.fsync(f.fileno())
        logger.info("Section completed: %s", sid)

    def reset(self, step_id: str) -> None:
        sid = _check_step_id(step_id)
        if not self.path.exists():
            return
        lines = self._lines()
        kept = [ln for ln in lines if ln and ln != sid]
        if len(kept) == len([ln for ln in lines if ln]):
            logger.info("Checkpoint %s was not set", sid)
            return

        fd, tmp = tempfile.mkstemp(prefix=".checkpoint.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("".join(ln + "\n" for ln in kept))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.info("Checkpoint reset: %s", sid)

    def reset_all(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("All checkpoints reset (%s)", self.path)
