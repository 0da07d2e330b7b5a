import logging
import os
from pathlib import Path

import httpx
import pytest

from wsl_setup.errors import FetchError, InsecureURLError, VerifyError
from wsl_setup.lib.fetch import Fetcher, backoff_delay, verify_downloaded_script
from wsl_setup.logging_utils import AUDIT


def make_fetcher(handler, **client_kwargs):
    sleeps = []
    client = httpx.Client(transport=httpx.MockTransport(handler), **client_kwargs)
    fetcher = Fetcher(client, sleep=sleeps.append)
    return fetcher, sleeps


def test_backoff_is_exponential():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [2, 4, 8]


def test_http_url_rejected_without_any_request(tmp_path):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="x")

    fetcher, sleeps = make_fetcher(handler)
    with pytest.raises(InsecureURLError):
        fetcher.fetch_to_string("http://example.com/version")
    with pytest.raises(InsecureURLError):
        fetcher.fetch_to_file("http://example.com/file", tmp_path / "f")
    assert calls == []
    assert sleeps == []


def test_retries_then_succeeds(tmp_path):
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=b"payload")

    fetcher, sleeps = make_fetcher(handler)
    dest = fetcher.fetch_to_file("https://example.com/file.tar.gz", tmp_path / "out" / "file.tar.gz")

    assert dest.read_bytes() == b"payload"
    assert len(attempts) == 3
    assert sleeps == [2, 4]
    assert [p.name for p in dest.parent.iterdir()] == ["file.tar.gz"]


def test_gives_up_after_max_retries(tmp_path):
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    fetcher, sleeps = make_fetcher(handler)
    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch_to_file("https://example.com/file", tmp_path / "file", max_retries=3)

    assert excinfo.value.attempts == 3
    assert sleeps == [2, 4]
    assert not (tmp_path / "file").exists()


def test_fetch_to_string_strips_and_treats_empty_as_failure():
    bodies = iter(["", "   \n", "go1.22.4\ntime 2024\n"])

    def handler(request):
        return httpx.Response(200, text=next(bodies))

    fetcher, sleeps = make_fetcher(handler)
    assert fetcher.fetch_to_string("https://go.dev/VERSION?m=text") == "go1.22.4\ntime 2024"
    assert sleeps == [2, 4]


def test_fetch_to_string_validator_rejects():
    def handler(request):
        return httpx.Response(200, text="<html>rate limited</html>")

    fetcher, _ = make_fetcher(handler)
    with pytest.raises(FetchError, match="malformed"):
        fetcher.fetch_to_string("https://dl.k8s.io/release/stable.txt", max_retries=2, validate=lambda b: b.startswith("v"))


def test_redirect_to_http_is_a_failure():
    def handler(request):
        if request.url.scheme == "https":
            return httpx.Response(302, headers={"location": "http://example.com/plain"})
        return httpx.Response(200, text="plain")

    fetcher, _ = make_fetcher(handler, follow_redirects=True)
    with pytest.raises(FetchError, match="non-https"):
        fetcher.fetch_to_string("https://example.com/start", max_retries=1)


def test_verify_downloaded_script(tmp_path, caplog):
    script = tmp_path / "install.sh"
    script.write_text("#!/bin/sh\necho hi\n")

    with caplog.at_level(logging.INFO):
        digest = verify_downloaded_script(script, "https://example.com/install.sh")

    assert len(digest) == 64
    assert any(r.levelno == AUDIT and digest in r.getMessage() for r in caplog.records)


def test_verify_rejects_empty_or_missing(tmp_path):
    empty = tmp_path / "empty.sh"
    empty.write_text("")
    with pytest.raises(VerifyError):
        verify_downloaded_script(empty, "https://example.com/empty.sh")
    with pytest.raises(VerifyError):
        verify_downloaded_script(tmp_path / "missing.sh", "https://example.com/missing.sh")


def test_run_remote_script_runs_then_removes(tmp_path):
    def handler(request):
        return httpx.Response(200, text="#!/bin/bash\necho install\n")

    fetcher, _ = make_fetcher(handler)
    seen = []

    def runner(argv, **kwargs):
        seen.append(list(argv))
        assert Path(argv[1]).read_text().startswith("#!/bin/bash")

    fetcher.run_remote_script("https://pyenv.run", "bash", ["-s", "--", "-y"], runner=runner)

    assert seen[0][0] == "bash"
    assert seen[0][2:] == ["-s", "--", "-y"]
    assert not os.path.exists(seen[0][1])


def test_run_remote_script_dry_run_does_not_fetch():
    fetcher, _ = make_fetcher(lambda request: pytest.fail("network used in dry run"))
    fetcher.run_remote_script("https://pyenv.run", "bash", runner=lambda *a, **k: pytest.fail("ran"), dry_run=True)
