"""GitHub module: REST client, Git Data primitives and URL pinning."""

from gh_trs.github.api import GitHubClient, parse_repo
from gh_trs.github.git_data import GitDataClient
from gh_trs.github.raw_url import Memo, RawUrl, resolve

__all__ = [
    "GitHubClient",
    "parse_repo",
    "GitDataClient",
    "Memo",
    "RawUrl",
    "resolve",
]
