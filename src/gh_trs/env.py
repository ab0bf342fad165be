"""Runtime settings resolution.

Resolves the GitHub token and a few runtime knobs. Command-line values win,
then environment variables, then a ``.env`` file in the working directory.

Environment variables:
    GITHUB_TOKEN: GitHub personal access token
    GH_TRS_REQUEST_TIMEOUT: per-request timeout in seconds (default: 30)
    SAPPORO_RUN_DIR: run directory for the sapporo-service (default: ./sapporo_run)
    CI: set by CI providers; enables writing test logs
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from gh_trs.errors import ConfigError

DEFAULT_BRANCH = "gh-pages"
DEFAULT_CONFIG = "gh-trs-config.yml"
DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
_DEFAULT_TIMEOUT = 30.0

load_dotenv()


def github_token(arg_token: str | None = None) -> str:
    """Return the GitHub token from the CLI argument or the environment."""
    if arg_token:
        return arg_token
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token
    raise ConfigError(
        "No GitHub token provided. Please set the GITHUB_TOKEN environment "
        "variable or pass the --gh-token flag."
    )


def request_timeout() -> float:
    """Return the per-request timeout in seconds."""
    raw = os.environ.get("GH_TRS_REQUEST_TIMEOUT")
    if not raw:
        return _DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"GH_TRS_REQUEST_TIMEOUT must be a number, got '{raw}'")
    if value <= 0:
        raise ConfigError(f"GH_TRS_REQUEST_TIMEOUT must be positive, got '{raw}'")
    return value


def sapporo_run_dir() -> Path:
    """Return the run directory mounted into the sapporo-service container."""
    env = os.environ.get("SAPPORO_RUN_DIR")
    if env:
        return Path(env)
    return Path.cwd() / "sapporo_run"


def in_ci() -> bool:
    """True when running inside a CI environment."""
    return os.environ.get("CI", "").lower() in ("1", "true", "yes")
