"""Validate CLI command."""

import argparse
import logging

from gh_trs.config.io import read_config
from gh_trs.config.types import Config
from gh_trs.config.validator import validate
from gh_trs.env import github_token
from gh_trs.github.api import GitHubClient
from gh_trs.github.raw_url import Memo

logger = logging.getLogger(__name__)


def validate_configs(locations: list[str], github: GitHubClient) -> list[Config]:
    """Read and validate every config, sharing lookup caches across them."""
    branch_memo, commit_memo = Memo(), Memo()
    configs = []
    for location in locations:
        logger.info("Validating %s", location)
        config = validate(read_config(location), github, branch_memo, commit_memo)
        logger.debug("Validated config:\n%s", config.to_dict())
        configs.append(config)
    return configs


def cmd_validate(args: argparse.Namespace) -> int:
    github = GitHubClient(github_token(args.gh_token))
    configs = validate_configs(args.config_locations, github)
    for location, config in zip(args.config_locations, configs):
        lang = config.workflow.language
        print(f"  OK  {location}")
        print(f"      {config.label}, language: {lang.type.value} {lang.version}")
    print(f"\n  {len(configs)} config(s) valid")
    return 0
