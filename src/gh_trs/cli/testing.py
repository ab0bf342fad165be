"""Test CLI command."""

import argparse

from gh_trs.cli.validate import validate_configs
from gh_trs.env import github_token
from gh_trs.github.api import GitHubClient
from gh_trs.runner import check_test_results, run_tests


def print_results(results) -> None:
    for r in results:
        mark = "PASS" if r.passed else "FAIL"
        print(f"  {mark}  {r.workflow_id} {r.version} {r.test_id}")


def cmd_test(args: argparse.Namespace) -> int:
    github = GitHubClient(github_token(args.gh_token))
    configs = validate_configs(args.config_locations, github)
    results = run_tests(configs, wes_location=args.wes_location, docker_host=args.docker_host)
    print_results(results)
    check_test_results(results)
    print(f"\n  {len(results)} test(s) passed")
    return 0
