#!/usr/bin/env python3
"""
Generate a static HTML index page for a set of git repositories.

Features
- One table row per repository: name, description, last commit time
- Category separator rows via `-c LABEL`, kept in argument order
- Description and owner read from `description` / `.git/description` sidecars
- Everything file-derived is HTML-escaped; link targets are percent-encoded
- Streams the document to stdout row by row

Usage
    repoindex -c projects ~/git/foo.git ~/git/bar.git -c forks ~/git/baz > index.html

Notes
- Requires a working `git` in PATH.
- Exit status is 1 if any repository could not be opened.
"""

from __future__ import annotations
import argparse
import ctypes
import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, TextIO, Tuple, Union
from urllib.parse import quote

logger = logging.getLogger(__name__)

FIELD_CAP = 254  # bytes kept from the first line of a sidecar file


def _path_max() -> int:
    try:
        return os.pathconf("/", "PC_PATH_MAX")
    except (AttributeError, OSError, ValueError):
        return 4096


PATH_MAX = _path_max()

DEFAULT_SITE_NAME = "git"
DEFAULT_PAGE_LABEL = "repos"
DEFAULT_SITE_DESCRIPTION = "repos"
DEFAULT_STYLESHEET = "/css/style.css"
DEFAULT_FAVICON = "/favicon.svg"
DEFAULT_LOGO = "/logo.svg"
DEFAULT_NAV_LINKS = [("home", "/"), ("repos", "/repos")]

XML_ENTITIES = {
    ord("<"): "&lt;",
    ord(">"): "&gt;",
    ord("'"): "&#39;",
    ord("&"): "&amp;",
    ord('"'): "&quot;",
}


class RepoIndexError(Exception):
    """Base class for errors raised while building the index."""


class FatalError(RepoIndexError):
    """The run cannot continue; the document is left unterminated."""


class PathTooLongError(FatalError):
    pass


class PathResolutionError(FatalError):
    pass


class RepositoryOpenError(RepoIndexError):
    """A single repository could not be opened; the run continues."""


class UsageError(RepoIndexError):
    pass


@dataclass
class SiteConfig:
    site_name: str = DEFAULT_SITE_NAME
    page_label: str = DEFAULT_PAGE_LABEL
    description: str = DEFAULT_SITE_DESCRIPTION
    stylesheet: str = DEFAULT_STYLESHEET
    favicon: str = DEFAULT_FAVICON
    logo: str = DEFAULT_LOGO
    nav_links: List[Tuple[str, str]] = field(default_factory=lambda: list(DEFAULT_NAV_LINKS))
    contact_email: str = ""
    contact_url: str = ""

    @classmethod
    def from_env(cls, environ=None) -> "SiteConfig":
        env = os.environ if environ is None else environ
        return cls(
            site_name=env.get("REPOINDEX_SITE_NAME", DEFAULT_SITE_NAME),
            page_label=env.get("REPOINDEX_PAGE_LABEL", DEFAULT_PAGE_LABEL),
            description=env.get("REPOINDEX_SITE_DESCRIPTION", DEFAULT_SITE_DESCRIPTION),
            stylesheet=env.get("REPOINDEX_STYLESHEET", DEFAULT_STYLESHEET),
            favicon=env.get("REPOINDEX_FAVICON", DEFAULT_FAVICON),
            logo=env.get("REPOINDEX_LOGO", DEFAULT_LOGO),
            contact_email=env.get("REPOINDEX_CONTACT_EMAIL", ""),
            contact_url=env.get("REPOINDEX_CONTACT_URL", ""),
        )


@dataclass
class Category:
    label: str


@dataclass
class RepoArg:
    path: str


Entry = Union[Category, RepoArg]


@dataclass
class RepositoryDescriptor:
    display_name: str
    source_path: str
    description: str = ""
    owner: str = ""

    @property
    def stripped_name(self) -> str:
        """Display name without a trailing `.git`, used for the row only."""
        if self.display_name.endswith(".git"):
            return self.display_name[:-4]
        return self.display_name


@dataclass
class CommitSnapshot:
    commit_id: str
    author_name: str
    author_email: str
    authored_time: int
    offset_minutes: int = 0


def run(cmd: List[str], cwd: str | None = None, env=None) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, cwd=cwd, env=env, check=False, capture_output=True,
                          text=True, encoding="utf-8", errors="surrogateescape")


def join_path(base: str, rel: str, limit: int = PATH_MAX) -> str:
    """Join `base` and `rel` with exactly one separator; never truncate."""
    sep = "/" if base and not base.endswith("/") else ""
    joined = f"{base}{sep}{rel}"
    if len(os.fsencode(joined)) >= limit:
        raise PathTooLongError(f"path truncated: '{joined}'")
    return joined


def resolve_display_name(repodir: str) -> str:
    try:
        absolute = os.path.realpath(repodir)
    except (OSError, ValueError, RuntimeError) as e:
        raise PathResolutionError(f"realpath: {repodir}: {e}") from e
    return os.path.basename(absolute)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    # surrogateescape keeps undecodable filename bytes (os.fsdecode) intact
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return value


def percent_encode(value: Union[str, bytes], length: Optional[int] = None) -> str:
    """Percent-encode for a URL path (RFC 3986 section 2.1); '/' is kept.

    Works on the UTF-8 bytes of `value`; `length` bounds those bytes.
    """
    raw = _as_bytes(value)
    if length is not None:
        raw = raw[:length]
    return quote(raw, safe="/")


def xml_encode(value: Union[str, bytes], length: Optional[int] = None) -> str:
    """Escape the HTML 2.0 / XML 1.0 special characters.

    `length` bounds the UTF-8 bytes of `value`. Bytes that are not valid
    UTF-8 come out as U+FFFD.
    """
    raw = _as_bytes(value)
    if length is not None:
        raw = raw[:length]
    return raw.decode("utf-8", errors="replace").translate(XML_ENTITIES)


def format_time_short(seconds: int, offset_minutes: int = 0) -> str:
    # UTC regardless of the commit's recorded offset
    try:
        t = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return ""
    return t.strftime("%Y-%m-%d %H:%M")


def read_first_line(path: str, cap: int = FIELD_CAP) -> Optional[str]:
    """Return the first line of `path` (newline included) bounded to `cap` bytes."""
    try:
        with open(path, "rb") as f:
            raw = f.readline(cap)
    except OSError:
        return None
    return raw.decode("utf-8", errors="replace")


def read_sidecar(repodir: str, name: str, cap: int = FIELD_CAP) -> Optional[str]:
    for rel in (name, f".git/{name}"):
        path = join_path(repodir, rel)
        if os.path.isfile(path):
            line = read_first_line(path, cap)
            if line is not None:
                return line
    return None


def read_description(repodir: str) -> str:
    line = read_sidecar(repodir, "description")
    if line is None:
        return ""
    return line[:-1] if line.endswith("\n") else line


def read_owner(repodir: str) -> str:
    line = read_sidecar(repodir, "owner")
    if line is None:
        return ""
    return line.split("\n", 1)[0]


def read_repository(repodir: str, display_name: Optional[str] = None) -> RepositoryDescriptor:
    """Build a fresh descriptor for `repodir`; nothing carries over between calls."""
    if display_name is None:
        display_name = resolve_display_name(repodir)
    desc = RepositoryDescriptor(display_name=display_name, source_path=repodir)
    desc.description = read_description(repodir)
    desc.owner = read_owner(repodir)
    return desc


def _git_env(repodir: str) -> dict:
    env = dict(os.environ)
    for var in ("GIT_DIR", "GIT_WORK_TREE", "GIT_COMMON_DIR", "GIT_INDEX_FILE"):
        env.pop(var, None)
    parent = os.path.dirname(os.path.realpath(repodir)) or "/"
    env["GIT_CEILING_DIRECTORIES"] = parent
    return env


@dataclass
class GitRepository:
    path: str
    git_dir: str

    @classmethod
    def open(cls, repodir: str) -> "GitRepository":
        """Open `repodir` itself; parent directories are never searched."""
        try:
            cp = run(["git", "rev-parse", "--absolute-git-dir"], cwd=repodir, env=_git_env(repodir))
        except OSError as e:
            raise RepositoryOpenError(f"{repodir}: cannot open repository: {e}") from e
        if cp.returncode != 0 or not cp.stdout.strip():
            raise RepositoryOpenError(f"{repodir}: cannot open repository")
        return cls(path=repodir, git_dir=cp.stdout.strip())

    def latest_commit(self) -> Optional[CommitSnapshot]:
        """Most recent commit reachable from HEAD, or None if the walk fails."""
        cmd = [
            "git", "--git-dir", self.git_dir, "log", "-1", "--no-show-signature",
            "--date=raw", "--format=%H%x00%an%x00%ae%x00%ad", "HEAD", "--",
        ]
        try:
            cp = run(cmd, env=_git_env(self.path))
        except OSError as e:
            logger.debug("%s: history walk failed: %s", self.path, e)
            return None
        if cp.returncode != 0:
            logger.debug("%s: history walk failed: %s", self.path, cp.stderr.strip())
            return None
        return parse_commit_line(cp.stdout)


def parse_commit_line(out: str) -> Optional[CommitSnapshot]:
    parts = out.rstrip("\n").split("\x00")
    if len(parts) != 4:
        return None
    commit_id, name, email, date = parts
    try:
        ts, _, tz = date.partition(" ")
        seconds = int(ts)
        offset = 0
        if len(tz) == 5 and tz[0] in "+-":
            offset = int(tz[1:3]) * 60 + int(tz[3:5])
            if tz[0] == "-":
                offset = -offset
    except ValueError:
        return None
    return CommitSnapshot(commit_id, name, email, seconds, offset)


def write_header(fp: TextIO, config: SiteConfig) -> None:
    fp.write(
        "<!doctype html>\n"
        "<html>\n<head>\n"
        '<meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1" />\n'
    )
    fp.write(f"<title>{xml_encode(config.site_name)} &gt; {xml_encode(config.page_label)}</title>\n")
    fp.write(
        f'<link rel="stylesheet" type="text/css" href="{xml_encode(config.stylesheet)}">\n'
        f'<link rel="icon" href="{xml_encode(config.favicon)}">\n'
    )
    fp.write(
        '</head>\n<body id="home">\n<div class="content">\n<header>\n'
        '<div class="main">\n'
        f'<a href="/"><img src="{xml_encode(config.logo)}" alt="{xml_encode(config.site_name)}" width="50"></a>\n'
        "</div>\n<nav>\n"
    )
    for label, href in config.nav_links:
        fp.write(f'<a href="{xml_encode(href)}">{xml_encode(label)}</a>\n')
    fp.write("</nav>\n</header>\n<h1>")
    fp.write(xml_encode(config.description))
    fp.write(
        '</h1>\n<div id="content">\n'
        '<table id="index"><thead>\n'
        "<tr><th><b>name</b></th><th><b>description</b></th><th><b>last commit</b></th></tr>"
        "</thead><tbody>\n"
    )
    fp.flush()


def write_repo_row(fp: TextIO, repo: RepositoryDescriptor, commit: Optional[CommitSnapshot]) -> None:
    name = repo.stripped_name
    when = format_time_short(commit.authored_time, commit.offset_minutes) if commit else ""
    fp.write(
        f'<tr class="repo"><td><a href="{percent_encode(name)}/">{xml_encode(name)}</a></td>'
        f"<td>{xml_encode(repo.description)}</td>"
        f"<td>{when}</td></tr>\n"
    )
    fp.flush()


def write_category_row(fp: TextIO, label: str) -> None:
    fp.write(f'<tr class="cat"><td>{xml_encode(label)}</td><td></td><td></td></tr>\n')
    fp.flush()


def write_footer(fp: TextIO, config: SiteConfig) -> None:
    contacts = []
    if config.contact_email:
        email = xml_encode(config.contact_email)
        contacts.append(f'mail: <a href="mailto:{email}">{email}</a>')
    if config.contact_url:
        url = xml_encode(config.contact_url)
        contacts.append(f'web: <a href="{url}">{url}</a>')
    fp.write(
        "</tbody>\n</table>\n</div>\n"
        "<footer>\n<hr>\n"
        f'<div class="meta">{" ".join(contacts)}</div>\n'
        "</footer>\n</div>\n</body>\n</html>\n"
    )
    fp.flush()


def parse_entries(tokens: List[str]) -> List[Entry]:
    """Split raw arguments into repositories and `-c LABEL` categories, in order."""
    entries: List[Entry] = []
    it = iter(tokens)
    for tok in it:
        if tok == "-c":
            label = next(it, None)
            if label is None:
                raise UsageError("-c: missing argument")
            entries.append(Category(label))
        else:
            entries.append(RepoArg(tok))
    return entries


def process_repository(fp: TextIO, repodir: str) -> None:
    """Render one repository row. Raises RepositoryOpenError or FatalError."""
    name = resolve_display_name(repodir)
    repo = GitRepository.open(repodir)
    desc = read_repository(repodir, name)
    commit = repo.latest_commit()
    write_repo_row(fp, desc, commit)


def generate_index(entries: List[Entry], fp: TextIO, config: Optional[SiteConfig] = None,
                   failures: Optional[List[str]] = None) -> int:
    """Write the whole document to `fp` and return the exit status."""
    config = config or SiteConfig()
    ret = 0
    write_header(fp, config)
    for entry in entries:
        if isinstance(entry, Category):
            write_category_row(fp, entry.label)
            continue
        try:
            process_repository(fp, entry.path)
        except RepositoryOpenError as e:
            logger.error("%s", e)
            if failures is not None:
                failures.append(entry.path)
            ret = 1
    write_footer(fp, config)
    return ret


def restrict_capabilities() -> None:
    """pledge(2) on OpenBSD; a no-op elsewhere."""
    if not sys.platform.startswith("openbsd"):
        return
    libc = ctypes.CDLL(None, use_errno=True)
    if libc.pledge(b"stdio rpath proc exec", None) == -1:
        raise FatalError(f"pledge: {os.strerror(ctypes.get_errno())}")


def setup_logging() -> None:
    name = os.environ.get("REPOINDEX_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, name, logging.WARNING)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="repoindex: %(message)s", stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="repoindex",
        usage="%(prog)s [-c LABEL | REPODIR]...",
        description="Generate a static HTML index of git repositories on stdout",
    )
    ap.add_argument("args", nargs="*", metavar="REPODIR",
                    help="Repository directories and -c LABEL pairs, in order")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    setup_logging()
    ap = build_parser()
    if argv is None:
        argv = sys.argv[1:]
    if argv[:1] in (["-h"], ["--help"]):
        ap.parse_args(argv)
    # everything is positional; parse_entries alone handles -c
    ns = ap.parse_args(["--", *argv])
    try:
        entries: List[Entry] = parse_entries(ns.args)
    except UsageError as e:
        ap.error(str(e))
    if not entries:
        ap.print_usage(sys.stderr)
        return 1

    try:
        restrict_capabilities()
        return generate_index(entries, sys.stdout, SiteConfig.from_env())
    except (FatalError, MemoryError) as e:
        sys.stdout.flush()
        logger.error("%s", str(e) or type(e).__name__)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
