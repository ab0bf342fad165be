"""Generate a gh-trs config skeleton from a primary workflow URL."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Callable

from gh_trs.config.io import output_format, write_config
from gh_trs.config.types import Author, Config, File, FileType, Testing, Workflow
from gh_trs.github.api import GitHubClient
from gh_trs.github.raw_url import Memo, RawUrl
from gh_trs.inspect import inspect_wf_type_version
from gh_trs.remote import fetch_raw_content

logger = logging.getLogger(__name__)

TEMPLATE_VERSION = "1.0.0"


def get_author(github: GitHubClient) -> Author:
    """The authenticated user, as the config's first author."""
    user = github.get_user()
    return Author(
        github_account=user["login"],
        name=user.get("name"),
        affiliation=user.get("company"),
        orcid=None,
    )


def obtain_wf_files(
    github: GitHubClient,
    primary_wf: RawUrl,
    use_commit_url: bool = True,
) -> tuple[File, ...]:
    """List every file beside the primary workflow, recursively.

    Targets are relative to the primary file's directory. The primary
    file itself is the only entry typed ``primary``.
    """
    base_dir = primary_wf.base_dir()
    base_url = primary_wf.to_base_url(use_commit=use_commit_url)
    files = []
    for path in github.iter_files(primary_wf.owner, primary_wf.name, base_dir, primary_wf.commit):
        target = str(PurePosixPath(path).relative_to(base_dir)) if base_dir else path
        file_type = FileType.PRIMARY if path == primary_wf.file_path else FileType.SECONDARY
        files.append(File(url=f"{base_url}{target}", target=target, type=file_type))
    return tuple(files)


def build_template(
    github: GitHubClient,
    wf_url: str,
    use_commit_url: bool = False,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> Config:
    branch_memo, commit_memo = Memo(), Memo()
    primary_wf = RawUrl.parse(github, wf_url, branch_memo, commit_memo)
    readme = RawUrl.parse(
        github, github.get_readme_url(primary_wf.owner, primary_wf.name), branch_memo, commit_memo,
    )
    return Config(
        id=str(uuid.uuid4()),
        version=TEMPLATE_VERSION,
        license=github.get_license(primary_wf.owner, primary_wf.name),
        authors=(get_author(github),),
        workflow=Workflow(
            name=primary_wf.file_stem(),
            readme=readme.to_url() if use_commit_url else readme.to_branch_url(),
            language=inspect_wf_type_version(primary_wf.to_url(), fetch=fetch),
            files=obtain_wf_files(github, primary_wf, use_commit_url),
            testing=(Testing.default(),),
        ),
    )


def make_template(
    github: GitHubClient,
    wf_url: str,
    output: Path | str,
    use_commit_url: bool = False,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> Config:
    """Build a template config for ``wf_url`` and write it to ``output``.

    Branch URLs are kept as branch URLs unless ``use_commit_url`` is set;
    ``gh-trs validate`` pins them later.
    """
    output_format(output)
    logger.info("Making a template from workflow location: %s", wf_url)
    config = build_template(github, wf_url, use_commit_url, fetch=fetch)
    path = write_config(config, output)
    logger.info("Wrote template to %s", path)
    return config
