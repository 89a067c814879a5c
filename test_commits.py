import pytest

from conftest import requires_git
from repoindex_package.repoindex import (
    GitRepository,
    RepositoryOpenError,
    parse_commit_line,
)

pytestmark = requires_git


def test_open_missing_directory(tmp_path):
    with pytest.raises(RepositoryOpenError):
        GitRepository.open(str(tmp_path / "missing"))


def test_open_plain_directory(tmp_path):
    with pytest.raises(RepositoryOpenError):
        GitRepository.open(str(tmp_path))


def test_open_does_not_search_parents(make_repo):
    repo = make_repo("outer")
    sub = repo / "sub"
    sub.mkdir()
    GitRepository.open(str(repo))
    with pytest.raises(RepositoryOpenError):
        GitRepository.open(str(sub))


def test_latest_commit_worktree(make_repo):
    repo = GitRepository.open(str(make_repo("work")))
    commit = repo.latest_commit()
    assert commit is not None
    assert commit.author_name == "Ada Lovelace"
    assert commit.author_email == "ada@example.org"
    assert commit.authored_time == 1700000000
    assert commit.offset_minutes == 60
    assert len(commit.commit_id) >= 40


def test_latest_commit_bare(make_repo):
    repo = GitRepository.open(str(make_repo("bare.git", bare=True)))
    assert repo.latest_commit().authored_time == 1700000000


def test_latest_commit_empty_repository(make_repo):
    repo = GitRepository.open(str(make_repo("empty", commit=False)))
    assert repo.latest_commit() is None


def test_parse_commit_line():
    c = parse_commit_line("abc\x00Name\x00n@example.org\x001700000000 -0230\n")
    assert (c.commit_id, c.author_name, c.author_email) == ("abc", "Name", "n@example.org")
    assert c.authored_time == 1700000000
    assert c.offset_minutes == -150


def test_parse_commit_line_malformed():
    assert parse_commit_line("") is None
    assert parse_commit_line("abc\x00Name\x00mail\x00notatime +0000") is None
