"""make-template CLI command."""

import argparse

from gh_trs.env import github_token
from gh_trs.github.api import GitHubClient
from gh_trs.make_template import make_template


def cmd_make_template(args: argparse.Namespace) -> int:
    github = GitHubClient(github_token(args.gh_token))
    config = make_template(
        github,
        args.workflow_location,
        args.output,
        use_commit_url=args.use_commit_url,
    )
    print(f"Wrote {args.output}")
    print(f"  id:       {config.id}")
    print(f"  name:     {config.workflow.name}")
    print(f"  files:    {len(config.workflow.files)}")
    return 0
