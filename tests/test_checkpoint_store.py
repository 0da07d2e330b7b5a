import pytest

from wsl_setup.checkpoint_store import CheckpointStore


def test_mark_and_query(tmp_path):
    store = CheckpointStore(tmp_path / "logs" / ".checkpoint")
    assert not store.is_completed("packages")

    store.mark_completed("packages")

    assert store.is_completed("packages")
    assert (tmp_path / "logs" / ".checkpoint").read_text() == "packages\n"


def test_lookup_is_exact_line_match(tmp_path):
    store = CheckpointStore(tmp_path / ".checkpoint")
    store.mark_completed("shell_config")

    assert not store.is_completed("shell")
    assert not store.is_completed("shell_conf")


def test_survives_new_instance_and_dedupes(tmp_path):
    path = tmp_path / ".checkpoint"
    CheckpointStore(path).mark_completed("backup")
    CheckpointStore(path).mark_completed("backup")
    CheckpointStore(path).mark_completed("final")

    assert CheckpointStore(path).completed_steps() == ["backup", "final"]


def test_reset_removes_only_that_step(tmp_path):
    store = CheckpointStore(tmp_path / ".checkpoint")
    for sid in ("backup", "packages", "backup", "final"):
        store.mark_completed(sid)

    store.reset("backup")

    assert not store.is_completed("backup")
    assert store.completed_steps() == ["packages", "final"]


def test_reset_missing_file_is_noop(tmp_path):
    store = CheckpointStore(tmp_path / ".checkpoint")
    store.reset("packages")
    assert not (tmp_path / ".checkpoint").exists()


def test_reset_all(tmp_path):
    store = CheckpointStore(tmp_path / ".checkpoint")
    store.mark_completed("packages")
    store.reset_all()
    assert store.completed_steps() == []


def test_external_edits_are_honoured(tmp_path):
    path = tmp_path / ".checkpoint"
    store = CheckpointStore(path)
    store.mark_completed("packages")

    # the launcher may rewrite or delete the file between runs
    path.write_text("  clone_repos  \n\n")
    assert store.is_completed("clone_repos")
    assert not store.is_completed("packages")

    path.unlink()
    assert not store.is_completed("clone_repos")


@pytest.mark.parametrize("bad", ["", "   ", "a\nb"])
def test_rejects_malformed_ids(tmp_path, bad):
    store = CheckpointStore(tmp_path / ".checkpoint")
    with pytest.raises(ValueError):
        store.mark_completed(bad)
