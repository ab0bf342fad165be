"""Pin GitHub file URLs to a commit.

Accepted inputs:

    https://github.com/<owner>/<name>/blob/<branch|sha>/<path>
    https://raw.githubusercontent.com/<owner>/<name>/<branch|sha>/<path>

Output:

    https://raw.githubusercontent.com/<owner>/<name>/<sha>/<path>

Branch names are resolved to the branch's latest commit. Lookups are cached
in Memo objects owned by the caller, so one run resolves each repository and
branch once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlparse

from gh_trs.errors import ConfigError
from gh_trs.github.api import GitHubClient

_COMMIT_SHA = re.compile(r"^[0-9a-f]{40}$")
GITHUB_HOSTS = ("github.com", "raw.githubusercontent.com")


def is_commit_hash(value: str) -> bool:
    return bool(_COMMIT_SHA.match(value))


class Memo:
    """Per-run cache for GitHub lookups."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self._data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def is_github_url(url: str) -> bool:
    return urlparse(url).hostname in GITHUB_HOSTS


@dataclass(frozen=True)
class RawUrl:
    owner: str
    name: str
    branch: str | None
    commit: str
    file_path: str

    @classmethod
    def parse(
        cls,
        github: GitHubClient,
        url: str,
        branch_memo: Memo | None = None,
        commit_memo: Memo | None = None,
    ) -> "RawUrl":
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https", "ftp"):
            raise ConfigError(f"The scheme of {url} is not http, https or ftp.")
        if parsed.hostname not in GITHUB_HOSTS:
            raise ConfigError(f"The host of {url} is not github.com or raw.githubusercontent.com.")

        segments = [s for s in parsed.path.split("/") if s]
        if parsed.hostname == "github.com":
            if len(segments) < 5 or segments[2] != "blob":
                raise ConfigError(f"{url} is not a GitHub file URL (expected /<owner>/<name>/blob/<ref>/<path>).")
            owner, name, ref, rest = segments[0], segments[1], segments[3], segments[4:]
        else:
            if len(segments) < 4:
                raise ConfigError(f"{url} is not a GitHub raw content URL (expected /<owner>/<name>/<ref>/<path>).")
            owner, name, ref, rest = segments[0], segments[1], segments[2], segments[3:]

        if is_commit_hash(ref):
            branch, commit = None, ref
        else:
            # raw.githubusercontent.com accepts HEAD for the default branch
            branch = default_branch(github, owner, name, branch_memo) if ref == "HEAD" else ref
            commit = latest_commit_sha(github, owner, name, branch, commit_memo)
        return cls(owner=owner, name=name, branch=branch, commit=commit, file_path="/".join(rest))

    def to_url(self) -> str:
        return f"https://raw.githubusercontent.com/{self.owner}/{self.name}/{self.commit}/{self.file_path}"

    def to_branch_url(self) -> str:
        ref = self.branch or self.commit
        return f"https://raw.githubusercontent.com/{self.owner}/{self.name}/{ref}/{self.file_path}"

    def base_dir(self) -> str:
        parent = str(PurePosixPath(self.file_path).parent)
        return "" if parent == "." else parent

    def to_base_url(self, use_commit: bool = True) -> str:
        ref = self.commit if use_commit or not self.branch else self.branch
        base = f"https://raw.githubusercontent.com/{self.owner}/{self.name}/{ref}/"
        directory = self.base_dir()
        return f"{base}{directory}/" if directory else base

    def file_stem(self) -> str:
        return PurePosixPath(self.file_path).stem


def default_branch(
    github: GitHubClient,
    owner: str,
    name: str,
    memo: Memo | None = None,
) -> str:
    key = f"{owner}/{name}"
    if memo is not None and key in memo:
        return memo.get(key)
    branch = github.get_default_branch(owner, name)
    if memo is not None:
        memo.put(key, branch)
    return branch


def latest_commit_sha(
    github: GitHubClient,
    owner: str,
    name: str,
    branch: str,
    memo: Memo | None = None,
) -> str:
    key = f"{owner}/{name}/{branch}"
    if memo is not None and key in memo:
        return memo.get(key)
    sha = github.get_latest_commit_sha(owner, name, branch)
    if not is_commit_hash(sha):
        raise ConfigError(f"GitHub returned an invalid commit hash for {key}: {sha}")
    if memo is not None:
        memo.put(key, sha)
    return sha


def resolve(
    github: GitHubClient,
    url: str,
    branch_memo: Memo | None = None,
    commit_memo: Memo | None = None,
) -> str:
    """Rewrite a GitHub blob/raw URL to a commit-pinned raw URL."""
    return RawUrl.parse(github, url, branch_memo, commit_memo).to_url()
