"""Read published TRS documents over plain HTTP.

A published registry is a static site, so reads are anonymous GETs against
GitHub Pages (or any other TRS base URL). A non-2xx answer means the
document has not been published yet.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import requests

from gh_trs.env import request_timeout
from gh_trs.errors import GhTrsError, TransportError
from gh_trs.trs.types import ServiceInfo, Tool, ToolClass, gh_pages_url

logger = logging.getLogger(__name__)


@dataclass
class PriorState:
    """Registry documents as currently published. Each is None when absent."""

    service_info: ServiceInfo | None = None
    tool_classes: list[ToolClass] | None = None
    tools: list[Tool] | None = None
    tool: Tool | None = None


class TrsEndpoint:
    def __init__(
        self,
        url: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.url = url.strip().rstrip("/") + "/"
        self.session = session or requests.Session()
        self.timeout = timeout or request_timeout()

    @classmethod
    def gh_pages(cls, owner: str, repo: str, **kwargs) -> "TrsEndpoint":
        return cls(f"{gh_pages_url(owner, repo)}/", **kwargs)

    @classmethod
    def from_tool_version_url(cls, url: str, **kwargs) -> "TrsEndpoint":
        """https://o.github.io/r/tools/<id>/versions/<v> -> https://o.github.io/r/"""
        parsed = urlparse(url)
        segments = [s for s in parsed.path.split("/") if s]
        if len(segments) < 4 or segments[-4] != "tools" or segments[-2] != "versions":
            raise GhTrsError(f"Not a TRS tool version URL: {url}")
        base_path = "/".join(segments[:-4])
        base = f"{parsed.scheme}://{parsed.netloc}/{base_path}"
        return cls(base, **kwargs)

    def __repr__(self) -> str:
        return f"TrsEndpoint({self.url!r})"

    def get_document(self, path: str):
        """GET ``<base>/<path>`` and parse JSON. Returns None for any non-2xx."""
        url = f"{self.url}{path.lstrip('/')}"
        try:
            response = self.session.get(
                url, headers={"Accept": "application/json"}, timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"Failed to GET {url}: {e}")
        if not response.ok:
            logger.debug("GET %s -> %d, treating as absent", url, response.status_code)
            return None
        try:
            return json.loads(response.text)
        except ValueError as e:
            raise GhTrsError(f"Malformed JSON document at {url}: {e}")

    def get_service_info(self) -> ServiceInfo | None:
        data = self.get_document("service-info")
        return ServiceInfo.from_dict(data) if data is not None else None

    def get_tool_classes(self) -> list[ToolClass] | None:
        data = self.get_document("toolClasses")
        return [ToolClass.from_dict(tc) for tc in data] if data is not None else None

    def get_tools(self) -> list[Tool] | None:
        data = self.get_document("tools")
        return [Tool.from_dict(t) for t in data] if data is not None else None

    def get_tool(self, tool_id: str) -> Tool | None:
        data = self.get_document(f"tools/{tool_id}")
        return Tool.from_dict(data) if data is not None else None

    def fetch_prior_state(self, tool_id: str) -> PriorState:
        """Read every document the merge needs. Absent documents stay None."""
        try:
            return PriorState(
                service_info=self.get_service_info(),
                tool_classes=self.get_tool_classes(),
                tools=self.get_tools(),
                tool=self.get_tool(tool_id),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GhTrsError(f"Published registry at {self.url} has an unexpected shape: {e}")

    def is_gh_trs(self) -> bool:
        service_info = self.get_service_info()
        return service_info is not None and service_info.is_gh_trs()

    def config_url(self, wf_id: str, version: str) -> str:
        return f"{self.url}tools/{wf_id}/versions/{version}/gh-trs-config.json"

    def all_versions(self, wf_id: str) -> list[str]:
        tool = self.get_tool(wf_id)
        return [v.version for v in tool.versions] if tool else []
