"""Command-line interface for gh-trs.

Usage:
    gh-trs make-template <workflow_location> [--gh-token T] [-o gh-trs-config.yml] [--use-commit-url]
    gh-trs validate [<config_location>...] [--gh-token T]
    gh-trs test [<config_location>...] [--gh-token T] [-w <wes>] [-d <docker_host>]
    gh-trs publish [<config_location>...] --repo owner/name [--branch gh-pages]
                   [--with-test] [-w <wes>] [-d <docker_host>] [--from-trs] [--max-retries 2]
"""

import argparse
import logging
import sys

from gh_trs import __version__
from gh_trs.cli.publish import cmd_publish
from gh_trs.cli.template import cmd_make_template
from gh_trs.cli.testing import cmd_test
from gh_trs.cli.validate import cmd_validate
from gh_trs.env import DEFAULT_BRANCH, DEFAULT_CONFIG, DEFAULT_DOCKER_HOST
from gh_trs.errors import GhTrsError

logger = logging.getLogger("gh_trs")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--gh-token", default=None,
        help="GitHub personal access token (default: $GITHUB_TOKEN)",
    )
    p.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Verbose logging",
    )


def _add_configs(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "config_locations", nargs="*", default=[DEFAULT_CONFIG],
        help="Paths or URLs of gh-trs configs",
    )


def _add_wes(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-w", "--wes-location", default=None,
        help="WES location; when omitted a sapporo-service is started with docker",
    )
    p.add_argument(
        "-d", "--docker-host", default=DEFAULT_DOCKER_HOST,
        help="Docker host used to start the sapporo-service",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gh-trs",
        description="Publish workflow metadata as a GA4GH TRS API on GitHub Pages",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command")

    # make-template
    tmpl = sub.add_parser("make-template", help="Generate a config template from a workflow URL")
    tmpl.add_argument("workflow_location", help="GitHub URL of the primary workflow file")
    _add_common(tmpl)
    tmpl.add_argument("-o", "--output", default=DEFAULT_CONFIG, help="Output path (.yml or .json)")
    tmpl.add_argument(
        "--use-commit-url", action="store_true",
        help="Write commit-pinned URLs instead of branch URLs",
    )

    # validate
    val = sub.add_parser("validate", help="Validate configs and pin their URLs")
    _add_configs(val)
    _add_common(val)

    # test
    tst = sub.add_parser("test", help="Run config test cases on a WES")
    _add_configs(tst)
    _add_common(tst)
    _add_wes(tst)

    # publish
    pub = sub.add_parser("publish", help="Publish configs to a GitHub Pages TRS")
    _add_configs(pub)
    _add_common(pub)
    pub.add_argument("-r", "--repo", required=True, help="Target repository (owner/name)")
    pub.add_argument("-b", "--branch", default=DEFAULT_BRANCH, help="Target branch")
    pub.add_argument("--with-test", action="store_true", help="Test before publishing")
    _add_wes(pub)
    pub.add_argument(
        "--from-trs", action="store_true",
        help="Treat locations as TRS endpoints and republish every version found there",
    )
    pub.add_argument(
        "--max-retries", type=int, default=2,
        help="Restart a publish this many times when the branch moves concurrently",
    )

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)

    dispatch = {
        "make-template": cmd_make_template,
        "validate": cmd_validate,
        "test": cmd_test,
        "publish": cmd_publish,
    }

    logger.debug("args: %s", args)
    try:
        return dispatch[args.command](args)
    except GhTrsError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
