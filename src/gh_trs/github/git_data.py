"""Remote Git Data primitives: refs, trees and commits.

Each method is a single call against GitHub's Git Data API. Nothing is
cloned or checked out; a publish is one tree, one commit and one ref move.
"""

from __future__ import annotations

import logging

from gh_trs.errors import GhTrsError, NotFound
from gh_trs.github.api import GitHubClient

logger = logging.getLogger(__name__)

BLOB_MODE = "100644"


class GitDataClient:
    def __init__(self, github: GitHubClient) -> None:
        self.github = github

    def exists_branch(self, owner: str, repo: str, branch: str) -> bool:
        try:
            self.github.get(f"/repos/{owner}/{repo}/branches/{branch}")
        except NotFound:
            return False
        return True

    def get_branch_tip(self, owner: str, repo: str, branch: str) -> str:
        """Return the commit SHA the branch points at. Raises NotFound if absent."""
        ref = self.github.get(f"/repos/{owner}/{repo}/git/ref/heads/{branch}")
        return _sha(ref.get("object") if isinstance(ref, dict) else None, "ref")

    def get_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        commit = self.github.get(f"/repos/{owner}/{repo}/git/commits/{commit_sha}")
        return _sha(commit.get("tree") if isinstance(commit, dict) else None, "commit")

    def create_tree(
        self,
        owner: str,
        repo: str,
        entries: dict[str, str],
        base_tree: str | None = None,
    ) -> str:
        """Create a tree of blobs from ``path -> content``.

        With ``base_tree`` the result is an overlay: listed paths are added
        or replaced, every other path of the base tree is kept.
        """
        body: dict = {
            "tree": [
                {"path": path, "mode": BLOB_MODE, "type": "blob", "content": content}
                for path, content in sorted(entries.items())
            ],
        }
        if base_tree:
            body["base_tree"] = base_tree
        tree = self.github.post(f"/repos/{owner}/{repo}/git/trees", body)
        sha = _sha(tree, "tree")
        logger.debug("Created tree %s with %d entries (base: %s)", sha, len(entries), base_tree)
        return sha

    def create_commit(
        self,
        owner: str,
        repo: str,
        tree_sha: str,
        message: str,
        parent: str | None = None,
    ) -> str:
        body = {
            "message": message,
            "tree": tree_sha,
            "parents": [parent] if parent else [],
        }
        commit = self.github.post(f"/repos/{owner}/{repo}/git/commits", body)
        sha = _sha(commit, "commit")
        logger.debug("Created commit %s (parent: %s)", sha, parent)
        return sha

    def update_ref(self, owner: str, repo: str, branch: str, commit_sha: str) -> None:
        """Fast-forward the branch. GitHub rejects anything that is not a descendant."""
        self.github.patch(
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            {"sha": commit_sha, "force": False},
        )

    def create_ref(self, owner: str, repo: str, branch: str, commit_sha: str) -> None:
        self.github.post(
            f"/repos/{owner}/{repo}/git/refs",
            {"ref": f"refs/heads/{branch}", "sha": commit_sha},
        )


def _sha(payload, what: str) -> str:
    if not isinstance(payload, dict) or not payload.get("sha"):
        raise GhTrsError(f"Unexpected GitHub response: {what} has no sha")
    return payload["sha"]
