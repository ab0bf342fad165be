"""Publish one config to a GitHub branch as a static TRS API.

The publish is a single transaction against the remote object graph:

    EnsureBranch -> FetchPriorState -> Merge -> Commit -> AdvanceRef

No clone or checkout is made. The branch either moves to one new commit
holding the full document set, or it does not move at all. A rejected ref
advance surfaces as Conflict; the caller restarts from EnsureBranch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from gh_trs.config.types import Config
from gh_trs.errors import Conflict, GhTrsError, RequestRejected
from gh_trs.github.git_data import GitDataClient
from gh_trs.remote import fetch_raw_content
from gh_trs.trs.api import TrsEndpoint
from gh_trs.trs.response import TrsResponse

logger = logging.getLogger(__name__)

PLACEHOLDER_PATH = ".nojekyll"
BOOTSTRAP_MESSAGE = "Initial commit by gh-trs"
CONFLICT_STATUSES = (409, 422)


@dataclass
class PublishResult:
    commit_sha: str
    tree_sha: str
    parent_sha: str
    paths: list[str] = field(default_factory=list)
    bootstrapped: bool = False
    response: TrsResponse | None = None


def commit_message(config: Config) -> str:
    return f"Publish workflow {config.id} version {config.version} by gh-trs"


def ensure_branch(git: GitDataClient, owner: str, repo: str, branch: str) -> bool:
    """Create the branch from a parentless commit if it does not exist.

    The bootstrap commit holds only an empty .nojekyll, and the publish that
    follows is a second commit on top of it. A freshly bootstrapped branch
    therefore has two commits, and its tree keeps .nojekyll beside the TRS
    documents (which also stops Pages from running Jekyll over them).

    Returns:
        True if the branch was created.
    """
    if git.exists_branch(owner, repo, branch):
        return False
    logger.info("Branch %s does not exist in %s/%s, creating it", branch, owner, repo)
    tree_sha = git.create_tree(owner, repo, {PLACEHOLDER_PATH: ""})
    commit_sha = git.create_commit(owner, repo, tree_sha, BOOTSTRAP_MESSAGE)
    try:
        git.create_ref(owner, repo, branch, commit_sha)
    except RequestRejected as e:
        if e.status in CONFLICT_STATUSES:
            raise Conflict(f"Branch {branch} was created concurrently: {e.message}")
        raise
    return True


def commit_contents(
    git: GitDataClient,
    owner: str,
    repo: str,
    branch: str,
    contents: dict[str, str],
    message: str,
) -> tuple[str, str, str]:
    """Overlay ``contents`` on the branch tip and create a commit on top.

    Returns:
        (commit_sha, tree_sha, parent_sha)
    """
    parent_sha = git.get_branch_tip(owner, repo, branch)
    base_tree = git.get_commit_tree(owner, repo, parent_sha)
    tree_sha = git.create_tree(owner, repo, contents, base_tree=base_tree)
    commit_sha = git.create_commit(owner, repo, tree_sha, message, parent=parent_sha)
    return commit_sha, tree_sha, parent_sha


def advance_ref(git: GitDataClient, owner: str, repo: str, branch: str, commit_sha: str) -> None:
    try:
        git.update_ref(owner, repo, branch, commit_sha)
    except RequestRejected as e:
        if e.status in CONFLICT_STATUSES:
            raise Conflict(f"Branch {branch} moved while publishing: {e.message}")
        raise


def publish(
    config: Config,
    owner: str,
    repo: str,
    branch: str,
    verified: bool,
    git: GitDataClient,
    endpoint: TrsEndpoint | None = None,
    fetch: Callable[[str], str] = fetch_raw_content,
    now: datetime | None = None,
) -> PublishResult:
    """Publish a validated config to ``owner/repo@branch``.

    Args:
        config: Validated config (language type set, URLs pinned).
        owner: Repository owner.
        repo: Repository name.
        branch: Branch served by GitHub Pages.
        verified: Whether the config's tests passed.
        git: Git Data client for the target repository.
        endpoint: Where the published registry is read from. Defaults to
            the repository's GitHub Pages URL. Runs that publish several
            configs pass a RunEndpoint so earlier commits are seen.
        fetch: Raw content fetcher for file checksums.
        now: Timestamp for service-info. Defaults to the current UTC time.

    Returns:
        PublishResult describing the new commit.

    Raises:
        Conflict: If the branch moved before the ref could be advanced.
        GhTrsError: Any other failure, with owner/repo/branch/step set.
    """
    endpoint = endpoint or TrsEndpoint.gh_pages(owner, repo)
    step = "ensure_branch"
    try:
        bootstrapped = ensure_branch(git, owner, repo, branch)

        step = "fetch_prior_state"
        prior = endpoint.fetch_prior_state(config.id)

        step = "merge"
        response = TrsResponse.build(config, owner, repo, verified, prior, fetch=fetch, now=now)
        contents = response.generate_contents()

        step = "commit"
        commit_sha, tree_sha, parent_sha = commit_contents(
            git, owner, repo, branch, contents, commit_message(config),
        )

        step = "advance_ref"
        advance_ref(git, owner, repo, branch, commit_sha)
    except GhTrsError as e:
        raise e.with_context(owner=owner, repo=repo, branch=branch, step=step)

    logger.info(
        "Published %s to %s/%s@%s (commit %s)", config.label, owner, repo, branch, commit_sha,
    )
    return PublishResult(
        commit_sha=commit_sha,
        tree_sha=tree_sha,
        parent_sha=parent_sha,
        paths=sorted(contents),
        bootstrapped=bootstrapped,
        response=response,
    )
