import logging
import threading
import time

import pytest

from wsl_setup.errors import ElevationError
from wsl_setup.lib.sudo import SECRET_VAR, AcquireMethod, CredentialSession


class ProbeRecorder:
    def __init__(self, cached=False, secret_ok=True):
        self.cached = cached
        self.secret_ok = secret_ok
        self.calls = []
        self.lock = threading.Lock()

    def __call__(self, argv, input_text):
        with self.lock:
            self.calls.append((list(argv), input_text))
        if argv[:2] == ["sudo", "-n"]:
            return 0 if self.cached else 1
        if argv[:2] == ["sudo", "-S"]:
            return 0 if self.secret_ok else 1
        return 1

    def keepalive_count(self):
        with self.lock:
            return sum(1 for argv, _ in self.calls if argv == ["sudo", "-n", "true"])


def fail_prompt():
    pytest.fail("must not prompt")


def test_cached_credentials_need_no_secret():
    env = {SECRET_VAR: "hunter2"}
    probe = ProbeRecorder(cached=True)
    with CredentialSession(environ=env, probe=probe, prompt=fail_prompt, is_tty=lambda: False, interval=60) as s:
        assert s.acquire() is AcquireMethod.CACHED
    # the secret was never needed, so it is still there for nobody else to read
    assert env[SECRET_VAR] == "hunter2"


def test_secret_is_erased_before_validation(caplog):
    env = {SECRET_VAR: "hunter2", "OTHER": "x"}
    seen_env_during_probe = []

    def probe(argv, input_text):
        if argv[:2] == ["sudo", "-S"]:
            seen_env_during_probe.append(SECRET_VAR in env)
            assert input_text == "hunter2\n"
            return 0
        return 1

    with caplog.at_level(logging.DEBUG):
        with CredentialSession(environ=env, probe=probe, prompt=fail_prompt, is_tty=lambda: False, interval=60) as s:
            assert s.acquire() is AcquireMethod.SECRET

    assert seen_env_during_probe == [False]
    assert SECRET_VAR not in env
    assert "hunter2" not in caplog.text


def test_invalid_secret_fails_without_prompting():
    env = {SECRET_VAR: "wrong"}
    probe = ProbeRecorder(secret_ok=False)
    session = CredentialSession(environ=env, probe=probe, prompt=fail_prompt, is_tty=lambda: True, interval=60)

    with pytest.raises(ElevationError, match="Invalid sudo password"):
        session.acquire()
    assert SECRET_VAR not in env
    assert not session.keeper_alive


def test_non_interactive_without_secret_fails():
    session = CredentialSession(environ={}, probe=ProbeRecorder(), prompt=fail_prompt, is_tty=lambda: False)
    with pytest.raises(ElevationError, match="Non-interactive"):
        session.acquire()


def test_empty_secret_falls_back_to_prompt():
    env = {SECRET_VAR: ""}
    probe = ProbeRecorder()
    session = CredentialSession(environ=env, probe=probe, prompt=lambda: 0, is_tty=lambda: True, interval=60)

    with session:
        assert session.acquire() is AcquireMethod.PROMPT

    assert SECRET_VAR not in env
    assert not any(argv[:2] == ["sudo", "-S"] for argv, _ in probe.calls)


def test_empty_secret_non_interactive_reports_missing_access():
    env = {SECRET_VAR: ""}
    session = CredentialSession(environ=env, probe=ProbeRecorder(), prompt=fail_prompt, is_tty=lambda: False)
    with pytest.raises(ElevationError, match="Non-interactive"):
        session.acquire()
    assert SECRET_VAR not in env


def test_prompt_on_tty():
    prompts = []
    session = CredentialSession(
        environ={}, probe=ProbeRecorder(), prompt=lambda: prompts.append(1) or 0, is_tty=lambda: True, interval=60
    )
    with session:
        assert session.acquire() is AcquireMethod.PROMPT
    assert prompts == [1]


def test_keeper_refreshes_and_stops_on_release():
    probe = ProbeRecorder(cached=True)
    session = CredentialSession(environ={}, probe=probe, prompt=fail_prompt, is_tty=lambda: False, interval=0.01)

    with session:
        session.acquire()
        assert session.keeper_alive
        deadline = time.monotonic() + 2
        while probe.keepalive_count() < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert probe.keepalive_count() >= 3

    assert not session.keeper_alive
    stopped_at = probe.keepalive_count()
    time.sleep(0.05)
    assert probe.keepalive_count() == stopped_at


def test_keeper_stops_when_body_raises():
    session = CredentialSession(environ={}, probe=ProbeRecorder(cached=True), prompt=fail_prompt, is_tty=lambda: False, interval=0.01)
    with pytest.raises(KeyboardInterrupt):
        with session:
            session.acquire()
            raise KeyboardInterrupt
    assert not session.keeper_alive


def test_release_is_idempotent():
    session = CredentialSession(environ={}, probe=ProbeRecorder(cached=True), prompt=fail_prompt, is_tty=lambda: False, interval=60)
    session.release()
    session.acquire()
    session.release()
    session.release()
    assert session.method is None
