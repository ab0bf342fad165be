"""Publish CLI command."""

import argparse
import logging

from gh_trs.cli.testing import print_results
from gh_trs.cli.validate import validate_configs
from gh_trs.config.io import find_config_locs_from_trs
from gh_trs.config.types import Config
from gh_trs.env import github_token
from gh_trs.errors import Conflict
from gh_trs.github.api import GitHubClient, parse_repo
from gh_trs.github.git_data import GitDataClient
from gh_trs.publish import PublishResult, publish
from gh_trs.runner import run_tests
from gh_trs.trs.api import TrsEndpoint
from gh_trs.trs.response import RunEndpoint

logger = logging.getLogger(__name__)


def publish_with_retry(
    config: Config,
    owner: str,
    repo: str,
    branch: str,
    verified: bool,
    git: GitDataClient,
    max_retries: int = 2,
    endpoint: RunEndpoint | None = None,
) -> PublishResult:
    """Publish, restarting the whole transaction when the branch moved."""
    attempt = 0
    while True:
        try:
            return publish(config, owner, repo, branch, verified, git=git, endpoint=endpoint)
        except Conflict as e:
            if attempt >= max_retries:
                raise
            attempt += 1
            logger.warning("%s; retrying (%d/%d)", e, attempt, max_retries)


def resolve_locations(args: argparse.Namespace) -> list[str]:
    if not args.from_trs:
        return list(args.config_locations)
    locations = []
    for trs_location in args.config_locations:
        locations.extend(find_config_locs_from_trs(trs_location))
    return locations


def cmd_publish(args: argparse.Namespace) -> int:
    owner, repo = parse_repo(args.repo)
    github = GitHubClient(github_token(args.gh_token))
    git = GitDataClient(github)
    configs = validate_configs(resolve_locations(args), github)

    passed: set[tuple[str, str]] = set()
    failed: set[tuple[str, str]] = set()
    if args.with_test:
        results = run_tests(configs, wes_location=args.wes_location, docker_host=args.docker_host)
        print_results(results)
        passed = {(r.workflow_id, r.version) for r in results if r.passed}
        failed = {(r.workflow_id, r.version) for r in results if not r.passed}

    endpoint = RunEndpoint(TrsEndpoint.gh_pages(owner, repo))
    for config in configs:
        key = (config.id, config.version)
        verified = key in passed and key not in failed
        if args.with_test and not verified:
            logger.error("Tests failed for %s; publishing as not verified", config.label)
        result = publish_with_retry(
            config, owner, repo, args.branch, verified, git,
            max_retries=args.max_retries, endpoint=endpoint,
        )
        endpoint.record(result.response)
        created = " (branch created)" if result.bootstrapped else ""
        print(f"  Published {config.id} {config.version} -> {owner}/{repo}@{args.branch}{created}")
        print(f"    commit {result.commit_sha}")
    print(f"\n  {len(configs)} config(s) published")
    return 0
