"""Validate gh-trs configs and pin their URLs to commits."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Callable
from urllib.parse import urlparse

from gh_trs.config.types import Config, FileType, Language
from gh_trs.errors import ConfigError
from gh_trs.github.api import GitHubClient
from gh_trs.github.raw_url import Memo, is_github_url, resolve
from gh_trs.inspect import inspect_wf_type_version
from gh_trs.remote import fetch_raw_content

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https", "ftp"}


@dataclass
class ValidationResult:
    """Result of the structural checks on one config."""

    label: str
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        lines = [f"Config Validation: {self.label}"]
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  {w}")
        if self.passed and not self.warnings:
            lines.append("All checks passed.")
        return "\n".join(lines)


def _duplicates(values) -> list[str]:
    return sorted(v for v, n in Counter(values).items() if n > 1)


def check_config(config: Config) -> ValidationResult:
    """Run the structural checks that need no network access.

    Checks:
    - version and license are non-empty
    - at least one author, github_account unique
    - at least one workflow file, exactly one primary, targets unique
    - test ids unique, every test file target unique within its test
    - every URL uses http, https or ftp
    """
    result = ValidationResult(label=config.label)

    if not config.version.strip():
        result.errors.append("version is empty")
    if not config.license.strip():
        result.errors.append("license is empty")

    if not config.authors:
        result.errors.append("authors: at least one author is required")
    for account in _duplicates(a.github_account for a in config.authors):
        result.errors.append(f"authors: duplicate github_account '{account}'")

    wf = config.workflow
    if not wf.files:
        result.errors.append("workflow.files: at least one file is required")
    primaries = [f for f in wf.files if f.type == FileType.PRIMARY]
    if len(primaries) != 1:
        result.errors.append(
            f"workflow.files: exactly one primary file is required, found {len(primaries)}"
        )
    for target in _duplicates(f.target for f in wf.files):
        result.errors.append(f"workflow.files: duplicate target '{target}'")

    for test_id in _duplicates(t.id for t in wf.testing):
        result.errors.append(f"workflow.testing: duplicate id '{test_id}'")
    for testing in wf.testing:
        for target in _duplicates(f.target for f in testing.files):
            result.errors.append(f"workflow.testing[{testing.id}]: duplicate target '{target}'")

    urls = [("workflow.readme", wf.readme)]
    urls += [("workflow.files", f.url) for f in wf.files]
    urls += [(f"workflow.testing[{t.id}]", f.url) for t in wf.testing for f in t.files]
    for where, url in urls:
        if urlparse(url).scheme not in ALLOWED_SCHEMES:
            result.errors.append(f"{where}: {url} is not an http, https or ftp URL")

    if wf.language.type is None:
        result.warnings.append("workflow.language.type is not set; it will be inspected")
    if not wf.testing:
        result.warnings.append("workflow.testing is empty; nothing can be verified")

    return result


def pin_url(
    github: GitHubClient,
    url: str,
    branch_memo: Memo | None = None,
    commit_memo: Memo | None = None,
) -> str:
    """Pin GitHub URLs to a commit. Other URLs pass through unchanged."""
    if not is_github_url(url):
        return url
    return resolve(github, url, branch_memo, commit_memo)


def pin_config(
    github: GitHubClient,
    config: Config,
    branch_memo: Memo | None = None,
    commit_memo: Memo | None = None,
) -> Config:
    branch_memo = branch_memo if branch_memo is not None else Memo()
    commit_memo = commit_memo if commit_memo is not None else Memo()

    def pin(url: str) -> str:
        return pin_url(github, url, branch_memo, commit_memo)

    wf = config.workflow
    pinned_wf = replace(
        wf,
        readme=pin(wf.readme),
        files=tuple(replace(f, url=pin(f.url)) for f in wf.files),
        testing=tuple(
            replace(t, files=tuple(replace(f, url=pin(f.url)) for f in t.files))
            for t in wf.testing
        ),
    )
    return replace(config, workflow=pinned_wf)


def fill_language(
    config: Config,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> Config:
    """Sniff the primary file when the language type or version is missing."""
    language = config.workflow.language
    if language.type is not None and language.version is not None:
        return config
    sniffed = inspect_wf_type_version(config.workflow.primary_wf().url, fetch=fetch)
    if language.type is not None and sniffed.type != language.type:
        sniffed = Language(type=language.type, version=None)
    filled = Language(
        type=language.type or sniffed.type,
        version=language.version or sniffed.version,
    )
    if filled.type is None:
        raise ConfigError(
            f"{config.label}: could not determine workflow.language.type; set it explicitly"
        )
    logger.info("Inspected workflow language: %s %s", filled.type.value, filled.version)
    return replace(config, workflow=replace(config.workflow, language=filled))


def validate(
    config: Config,
    github: GitHubClient,
    branch_memo: Memo | None = None,
    commit_memo: Memo | None = None,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> Config:
    """Check a config, pin its URLs and fill in its language.

    Args:
        config: Config as read from disk or a URL.
        github: Client used to resolve branches to commits.
        branch_memo: Cache of default branches, shared across configs.
        commit_memo: Cache of branch tip commits, shared across configs.
        fetch: Raw content fetcher used to sniff the workflow language.

    Returns:
        A new Config ready to publish.

    Raises:
        ConfigError: If a structural check fails or the language cannot be determined.
    """
    result = check_config(config)
    for w in result.warnings:
        logger.warning("%s: %s", config.label, w)
    if not result.passed:
        raise ConfigError(result.summary())
    pinned = pin_config(github, config, branch_memo, commit_memo)
    return fill_language(pinned, fetch=fetch)
