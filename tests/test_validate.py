import logging

import pytest

from wsl_setup.config import SetupConfig
from wsl_setup.errors import ValidationError
from wsl_setup.lib.validate import (
    MAX_FIELD_LENGTH,
    RepoSpec,
    parse_repo_list,
    validate_field,
    validate_identity,
    validate_repo_spec,
)
from wsl_setup.logging_utils import SECURITY


def test_accepts_plain_values():
    assert validate_field("USER_FULLNAME", "Ada Lovelace") == "Ada Lovelace"
    assert validate_field("USER_EMAIL", "ada.l+dev@example.co.uk", is_email=True) == "ada.l+dev@example.co.uk"


@pytest.mark.parametrize("value", ["x$(id)", "a;b", "a|b", "a`b`", "a&b", "a>b", "a{b}", "a\\b"])
def test_rejects_shell_metacharacters(value, caplog):
    with caplog.at_level(logging.INFO):
        with pytest.raises(ValidationError) as excinfo:
            validate_field("USER_FULLNAME", value)
    assert excinfo.value.security
    assert any(r.levelno == SECURITY for r in caplog.records)


def test_rejects_control_characters_and_traversal():
    with pytest.raises(ValidationError, match="control"):
        validate_field("USER_FULLNAME", "Ada\nLovelace")
    with pytest.raises(ValidationError, match="traversal"):
        validate_field("USER_FULLNAME", "../../etc")


def test_rejects_empty_bad_email_and_overlong():
    with pytest.raises(ValidationError, match="empty"):
        validate_field("USER_FULLNAME", "")
    with pytest.raises(ValidationError, match="email"):
        validate_field("USER_EMAIL", "not-an-email", is_email=True)
    with pytest.raises(ValidationError, match="length"):
        validate_field("USER_FULLNAME", "a" * (MAX_FIELD_LENGTH + 1))


def test_repo_spec_allows_scp_style_urls():
    spec = validate_repo_spec("dotfiles:git@github.com:ada/dotfiles.git:~/dotfiles")
    assert spec == RepoSpec("dotfiles", "git@github.com:ada/dotfiles.git", "~/dotfiles")


def test_repo_spec_https_url():
    spec = validate_repo_spec("site:https://gitlab.com/ada/site.git:~/projects/site")
    assert spec.url == "https://gitlab.com/ada/site.git"
    assert spec.path == "~/projects/site"


def test_repo_spec_expands_home(tmp_path):
    spec = RepoSpec("x", "u", "~/projects/x")
    assert spec.expanded_path(tmp_path) == tmp_path / "projects" / "x"


@pytest.mark.parametrize(
    "entry",
    [
        "evil:git@github.com:a/b.git:~/x;rm -rf ~",
        "evil:https://example.com/$(whoami).git:~/x",
        "evil:git@github.com:a/b.git:~/../../etc",
        "missing-parts",
        "name:url-only",
        "name:https://host/r.git",
    ],
)
def test_repo_spec_rejects(entry):
    with pytest.raises(ValidationError):
        validate_repo_spec(entry)


def test_parse_repo_list_collects_rejects():
    specs, rejected = parse_repo_list("a:git@github.com:u/a.git:~/a, bad;entry:x:y ,,b:git@github.com:u/b.git:~/b")
    assert [s.name for s in specs] == ["a", "b"]
    assert rejected == [" bad;entry:x:y "]


def test_validate_identity_checks_provider_emails():
    validate_identity(SetupConfig(full_name="Ada", email="ada@example.com"))
    with pytest.raises(ValidationError) as excinfo:
        validate_identity(SetupConfig(full_name="Ada", email="ada@example.com", github_email="nope"))
    assert excinfo.value.field == "USER_GITHUB_EMAIL"


def test_command_substitution_in_name_is_a_security_event(caplog):
    assert validate_field("NAME", "John Doe") == "John Doe"
    with pytest.raises(ValidationError):
        validate_field("NAME", "John $(rm -rf /)")
    assert [r.levelname for r in caplog.records if r.levelno == SECURITY] == ["SECURITY"]


def test_repo_spec_path_and_suffix_attacks():
    good = "repo:git@github.com:user/repo.git:~/projects/repo"
    assert validate_repo_spec(good).path == "~/projects/repo"
    with pytest.raises(ValidationError):
        validate_repo_spec("repo:git@github.com:user/repo.git:../../etc/passwd")
    with pytest.raises(ValidationError):
        validate_repo_spec(good + ";rm -rf /")
    with pytest.raises(ValidationError):
        validate_field("NAME", "x" * 300)


@pytest.mark.parametrize("path", ["~", "~/", "~/.", "/", "{home}", "{parent}"])
def test_repo_spec_rejects_home_and_above(tmp_path, path):
    home = tmp_path / "home"
    path = path.format(home=home, parent=tmp_path)
    with pytest.raises(ValidationError, match="home directory"):
        validate_repo_spec(f"r:https://example.com/r.git:{path}", home)


def test_repo_spec_allows_paths_beside_home(tmp_path):
    home = tmp_path / "home"
    assert validate_repo_spec("r:https://example.com/r.git:~/src/r", home).path == "~/src/r"
    outside = tmp_path / "srv" / "r"
    assert validate_repo_spec(f"r:https://example.com/r.git:{outside}", home).path == str(outside)
