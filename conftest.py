import os
import shutil
import subprocess

import pytest

COMMIT_DATE = "1700000000 +0100"  # 2023-11-14 22:13 UTC

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(*args, cwd=None):
    env = dict(os.environ)
    env.update(
        GIT_AUTHOR_DATE=COMMIT_DATE,
        GIT_COMMITTER_DATE=COMMIT_DATE,
        GIT_CONFIG_NOSYSTEM="1",
    )
    cmd = [
        "git",
        "-c", "user.name=Ada Lovelace",
        "-c", "user.email=ada@example.org",
        "-c", "commit.gpgsign=false",
        "-c", "init.defaultBranch=master",
        *args,
    ]
    return subprocess.run(cmd, cwd=cwd, env=env, check=True, capture_output=True, text=True)


@pytest.fixture
def make_repo(tmp_path):
    """Create a git repository under tmp_path.

    bare=True clones the work tree into a bare `<name>` directory.
    commit=False leaves the repository without any commits.
    """

    def _make(name, *, bare=False, commit=True, description=None, owner=None, parent=None):
        base = parent or tmp_path
        base.mkdir(parents=True, exist_ok=True)
        work = base / (name + ".work" if bare else name)
        work.mkdir()
        git("init", "-q", str(work))
        if commit:
            git("commit", "-q", "--allow-empty", "-m", "initial", cwd=work)
        repo = work
        if bare:
            repo = base / name
            if commit:
                git("clone", "-q", "--bare", str(work), str(repo))
            else:
                git("init", "-q", "--bare", str(repo))
            shutil.rmtree(work)
        meta_dir = repo if bare else repo / ".git"
        if description is not None:
            (meta_dir / "description").write_text(description)
        elif (meta_dir / "description").exists():
            (meta_dir / "description").unlink()
        if owner is not None:
            (meta_dir / "owner").write_text(owner)
        return repo

    return _make
