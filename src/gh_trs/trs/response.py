"""Merge a gh-trs config into the published registry state.

TrsResponse.build() takes the config and whatever is currently published
(PriorState, any part of which may be absent) and produces every document
that must exist after this publish. generate_contents() lays those
documents out on the fixed TRS path grammar.

File content is fetched to compute checksums. A fetch failure only degrades
the affected document to a URL-only reference; the merge itself never fails
because a raw-content endpoint was unreachable.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from gh_trs.config.types import Config
from gh_trs.errors import ConfigError, ContentUnfetchable
from gh_trs.remote import fetch_raw_content
from gh_trs.trs.api import PriorState
from gh_trs.trs.types import (
    Checksum,
    FileType,
    FileWrapper,
    ServiceInfo,
    Tool,
    ToolClass,
    ToolFile,
    ToolVersion,
    to_json,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8

Fetcher = Callable[[str], str]


def merge_tool_classes(prior: list[ToolClass] | None) -> list[ToolClass]:
    """Keep the published list, adding the workflow class if it is missing."""
    if prior is None:
        return [ToolClass()]
    tool_classes = list(prior)
    if not any(tc.id == "workflow" for tc in tool_classes):
        tool_classes.append(ToolClass())
    return tool_classes


def merge_tools(prior: list[Tool] | None, tool: Tool) -> list[Tool]:
    """Replace the tool with the same id in place, or append it."""
    tools = list(prior or [])
    for i, existing in enumerate(tools):
        if existing.id == tool.id:
            tools[i] = tool
            break
    else:
        tools.append(tool)
    return tools


def fetch_contents(
    urls: list[str],
    fetch: Fetcher,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> dict[str, str | None]:
    """Fetch each distinct URL concurrently. Unfetchable URLs map to None."""

    def _one(url: str) -> str | None:
        try:
            return fetch(url)
        except ContentUnfetchable as e:
            logger.warning("%s; publishing a URL-only reference", e.message)
            return None

    distinct = list(dict.fromkeys(urls))
    if not distinct:
        return {}
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(distinct)))) as pool:
        return dict(zip(distinct, pool.map(_one, distinct)))


def generate_descriptor(config: Config, contents: dict[str, str | None]) -> FileWrapper:
    primary_wf = config.workflow.primary_wf()
    content = contents.get(primary_wf.url)
    if content is None:
        return FileWrapper(url=primary_wf.url)
    return FileWrapper.from_content(content, url=primary_wf.url)


def generate_files(config: Config, contents: dict[str, str | None]) -> list[ToolFile]:
    files = []
    for f in config.workflow.files:
        content = contents.get(f.url)
        files.append(ToolFile(
            path=f.url,
            file_type=FileType.from_config(f.type),
            checksum=Checksum.from_text(content) if content is not None else None,
        ))
    return files


def generate_tests(config: Config) -> list[FileWrapper]:
    """Each test case is its own document: serialized, then checksummed."""
    return [FileWrapper.from_content(to_json(t.to_dict())) for t in config.workflow.testing]


@dataclass
class TrsResponse:
    config: Config
    service_info: ServiceInfo
    tool_classes: list[ToolClass]
    tools: list[Tool]
    tool: Tool
    tool_version: ToolVersion
    descriptor: FileWrapper
    files: list[ToolFile]
    tests: list[FileWrapper]
    containerfile: list[FileWrapper] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        config: Config,
        owner: str,
        repo: str,
        verified: bool,
        prior: PriorState | None = None,
        fetch: Fetcher = fetch_raw_content,
        now: datetime | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> "TrsResponse":
        prior = prior or PriorState()
        if config.workflow.language.type is None:
            raise ConfigError(
                f"{config.label}: workflow.language.type is not set; run `gh-trs validate` first"
            )

        service_info = ServiceInfo.new_or_update(prior.service_info, config, owner, repo, now=now)
        tool_classes = merge_tool_classes(prior.tool_classes)

        if prior.tool is not None and prior.tool.id == config.id:
            tool = prior.tool.clone()
        else:
            tool = Tool.new(config, owner, repo)
        tool_version = tool.add_version(config, owner, repo, verified)
        tools = merge_tools(prior.tools, tool)

        contents = fetch_contents([f.url for f in config.workflow.files], fetch, max_workers)

        return cls(
            config=config,
            service_info=service_info,
            tool_classes=tool_classes,
            tools=tools,
            tool=tool,
            tool_version=tool_version,
            descriptor=generate_descriptor(config, contents),
            files=generate_files(config, contents),
            tests=generate_tests(config),
        )

    @property
    def descriptor_type(self) -> str:
        return self.config.workflow.language.type.value

    def generate_contents(self) -> dict[str, str]:
        """Map every document path of this publish to its JSON content."""
        id_ = self.tool.id
        version = self.tool_version.version
        version_dir = f"tools/{id_}/versions/{version}"
        lang_dir = f"{version_dir}/{self.descriptor_type}"
        return {
            "service-info/index.json": to_json(self.service_info.to_dict()),
            "toolClasses/index.json": to_json([tc.to_dict() for tc in self.tool_classes]),
            "tools/index.json": to_json([t.to_dict() for t in self.tools]),
            f"tools/{id_}/index.json": to_json(self.tool.to_dict()),
            f"tools/{id_}/versions/index.json": to_json([v.to_dict() for v in self.tool.versions]),
            f"{version_dir}/index.json": to_json(self.tool_version.to_dict()),
            f"{version_dir}/gh-trs-config.json": to_json(self.config.to_dict()),
            f"{lang_dir}/descriptor/index.json": to_json(self.descriptor.to_dict()),
            f"{lang_dir}/files/index.json": to_json([f.to_dict() for f in self.files]),
            f"{lang_dir}/tests/index.json": to_json([t.to_dict() for t in self.tests]),
            f"{version_dir}/containerfile/index.json": to_json(
                [c.to_dict() for c in self.containerfile]
            ),
        }


class RunEndpoint:
    """Prior state for several publishes to one branch within a single run.

    GitHub Pages rebuilds asynchronously, so documents committed earlier in
    the run are not visible there yet. They are carried forward and take
    precedence over what the site serves.
    """

    def __init__(self, endpoint) -> None:
        self.endpoint = endpoint
        self.service_info: ServiceInfo | None = None
        self.tool_classes: list[ToolClass] | None = None
        self.tools: list[Tool] | None = None
        self.tools_by_id: dict[str, Tool] = {}

    def fetch_prior_state(self, tool_id: str) -> PriorState:
        published = self.endpoint.fetch_prior_state(tool_id)
        tool = self.tools_by_id.get(tool_id)
        return PriorState(
            service_info=self.service_info or published.service_info,
            tool_classes=self.tool_classes if self.tool_classes is not None else published.tool_classes,
            tools=self.tools if self.tools is not None else published.tools,
            tool=tool.clone() if tool is not None else published.tool,
        )

    def record(self, response: TrsResponse) -> None:
        """Remember what a committed publish left on the branch."""
        self.service_info = response.service_info
        self.tool_classes = list(response.tool_classes)
        self.tools = [t.clone() for t in response.tools]
        self.tools_by_id[response.tool.id] = response.tool.clone()
