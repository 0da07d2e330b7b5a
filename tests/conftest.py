from typing import Callable, List, Optional

import httpx
import pytest

from wsl_setup.checkpoint_store import CheckpointStore
from wsl_setup.config import SetupConfig
from wsl_setup.context import StepContext
from wsl_setup.errors import CommandError
from wsl_setup.lib.command import CmdResult
from wsl_setup.lib.env import Paths
from wsl_setup.lib.fetch import Fetcher


class FakeRunner:
    """Stands in for run_cmd; records every call and never spawns anything."""

    def __init__(self, respond: Optional[Callable[[List[str]], Optional[CmdResult]]] = None) -> None:
        self.calls: List[dict] = []
        self._respond = respond

    def __call__(self, argv, *, check=True, sudo=False, dry_run=False, **kwargs) -> CmdResult:
        argv = list(argv)
        self.calls.append({"argv": argv, "sudo": sudo, "check": check, **kwargs})
        result = self._respond(argv) if self._respond else None
        if result is None:
            result = CmdResult(argv=argv, returncode=0, stdout="", stderr="")
        if check and result.returncode != 0:
            raise CommandError(argv, result.returncode, result.stderr)
        return result

    @property
    def argvs(self) -> List[List[str]]:
        return [c["argv"] for c in self.calls]


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def make_ctx(tmp_path):
    home = tmp_path / "home"
    home.mkdir()

    def _make(
        *,
        config: Optional[SetupConfig] = None,
        runner: Optional[FakeRunner] = None,
        which: Callable[[str], Optional[str]] = lambda name: None,
        handler: Callable[[httpx.Request], httpx.Response] = no_network,
        **kwargs,
    ) -> StepContext:
        paths = Paths.for_home(home, log_dir=str(tmp_path / "logs"))
        fetcher = Fetcher(httpx.Client(transport=httpx.MockTransport(handler)), sleep=lambda s: None)
        return StepContext(
            config=config or SetupConfig(),
            checkpoints=CheckpointStore(paths.checkpoint_file),
            fetcher=fetcher,
            paths=paths,
            runner=runner or FakeRunner(),
            which=which,
            **kwargs,
        )

    return _make
