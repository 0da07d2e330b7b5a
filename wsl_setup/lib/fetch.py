"""HTTPS-only downloads with retry and exponential backoff.

Many steps fetch and execute third-party installer scripts; this module is
the one place that talks to the network, so every fetch is HTTPS with a
TLS 1.2 floor, and every fetch is retried before it counts as a failure.
"""

from __future__ import annotations

import hashlib
import logging
import os
import ssl
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import httpx

from ..errors import FetchError, InsecureURLError, VerifyError
from ..logging_utils import log_audit
from .command import run_cmd

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT = 30.0


def tls_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    return ctx


def require_https(url: str) -> None:
    if not url.startswith("https://"):
        logger.error("Security: Only HTTPS URLs allowed: %s", url)
        raise InsecureURLError(url)


def backoff_delay(attempt: int) -> int:
    return 2**attempt


class Fetcher:
    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client or httpx.Client(
            verify=tls_context(),
            follow_redirects=True,
            timeout=timeout,
        )
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _retrying(self, url: str, max_retries: int, attempt_fn: Callable[[], object]) -> object:
        require_https(url)
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        last_error = ""
        for attempt in range(1, max_retries + 1):
            try:
                return attempt_fn()
            except (httpx.HTTPError, OSError, _AttemptFailed) as e:
                last_error = str(e) or type(e).__name__
            if attempt < max_retries:
                wait = backoff_delay(attempt)
                logger.warning(
                    "Download failed (%s), retry %d/%d in %ds: %s", last_error, attempt, max_retries, wait, url
                )
                self._sleep(wait)

        logger.error("Download failed after %d attempts: %s", max_retries, url)
        raise FetchError(url, max_retries, last_error)

    def fetch_to_file(
        self,
        url: str,
        dest: Union[str, Path],
        max_retries: int = DEFAULT_RETRIES,
    ) -> Path:
        dest_path = Path(dest)

        def attempt() -> Path:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{dest_path.name}.", dir=str(dest_path.parent))
            try:
                with os.fdopen(fd, "wb") as f, self._client.stream("GET", url) as r:
                    _check_response(r)
                    for chunk in r.iter_bytes():
                        f.write(chunk)
                os.replace(tmp, dest_path)
            finally:
                if os.path.exists(tmp):
                    os.unlink(tmp)
            return dest_path

        result = self._retrying(url, max_retries, attempt)
        logger.info("Downloaded %s -> %s", url, dest_path)
        return result  # type: ignore[return-value]

    def fetch_to_string(
        self,
        url: str,
        max_retries: int = DEFAULT_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        validate: Optional[Callable[[str], bool]] = None,
    ) -> str:
        """Fetch a small text body (version files, API responses).

        An empty body, or one rejected by ``validate``, counts as a failed
        attempt rather than an empty-but-valid result.
        """

        def attempt() -> str:
            r = self._client.get(url, timeout=timeout)
            _check_response(r)
            body = r.text.strip()
            if not body:
                raise _AttemptFailed("empty response")
            if validate is not None and not validate(body):
                raise _AttemptFailed("malformed response")
            return body

        return self._retrying(url, max_retries, attempt)  # type: ignore[return-value]

    def run_remote_script(
        self,
        url: str,
        interpreter: str = "sh",
        args: Sequence[str] = (),
        *,
        runner: Callable[..., object] = run_cmd,
        dry_run: bool = False,
        env: Optional[dict] = None,
    ) -> None:
        """Download an installer script, verify it, run it, and remove it."""

        require_https(url)
        if dry_run:
            logger.info("Would download and run %s with %s", url, interpreter)
            return

        fd, tmp = tempfile.mkstemp(prefix="wsl-setup-", suffix=".sh")
        os.close(fd)
        try:
            self.fetch_to_file(url, tmp)
            verify_downloaded_script(tmp, url)
            runner([interpreter, tmp, *args], env=env)
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)


class _AttemptFailed(Exception):
    pass


def _check_response(r: httpx.Response) -> None:
    if r.url.scheme != "https":
        raise _AttemptFailed(f"redirected to non-https URL {r.url}")
    if r.status_code >= 400:
        raise _AttemptFailed(f"HTTP {r.status_code}")


def verify_downloaded_script(path: Union[str, Path], source_url: str) -> str:
    """Sanity-check a downloaded script and log its checksum for the audit trail.

    The checksum is recorded, not compared: there are no pinned hashes.
    """

    p = Path(path)
    if not p.is_file() or not os.access(p, os.R_OK):
        logger.error("Downloaded script not found or not readable: %s", p)
        raise VerifyError(f"Downloaded script not found or not readable: {p}")

    data = p.read_bytes()
    if not data:
        logger.error("Downloaded script is empty: %s", source_url)
        raise VerifyError(f"Downloaded script is empty: {source_url}")

    if not data.startswith(b"#!"):
        logger.warning("Downloaded script has no shebang - may not be a valid script: %s", source_url)

    digest = hashlib.sha256(data).hexdigest()
    log_audit(logger, "Script checksum for %s: SHA256=%s", source_url, digest)
    return digest
