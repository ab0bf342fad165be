"""Authenticated GitHub REST client.

All GitHub calls go through GitHubClient.request(), which maps HTTP
outcomes onto the gh-trs error taxonomy:

    401          -> AuthenticationFailed
    404          -> NotFound
    other non-2xx -> RequestRejected (GitHub's message verbatim)
    timeout / connection error -> TransportError
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator

import requests

from gh_trs.env import request_timeout
from gh_trs.errors import (
    AuthenticationFailed,
    ConfigError,
    GhTrsError,
    NotFound,
    RequestRejected,
    TransportError,
)

logger = logging.getLogger(__name__)

API_ROOT = "https://api.github.com"
USER_AGENT = "gh-trs"

_REPO_PATTERN = re.compile(r"^[\w-]+/[\w-]+$")


def parse_repo(repo: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts."""
    if not _REPO_PATTERN.match(repo):
        raise ConfigError(
            f"Invalid repository name: {repo}. It should be in the format of `owner/name`."
        )
    owner, name = repo.split("/")
    return owner, name


class GitHubClient:
    """Thin JSON client for api.github.com."""

    def __init__(
        self,
        token: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
        api_root: str = API_ROOT,
    ) -> None:
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout or request_timeout()
        self.api_root = api_root.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github.v3+json",
            "Authorization": f"token {self.token}",
        }

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        body: dict | None = None,
    ) -> Any:
        url = path if path.startswith("http") else f"{self.api_root}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                json=body,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError(f"Timed out after {self.timeout}s on {method} {url}: {e}")
        except requests.RequestException as e:
            raise TransportError(f"Failed to {method} {url}: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        status = response.status_code
        if status == 401:
            raise AuthenticationFailed(
                "Failed to authenticate with GitHub. Please check your GitHub token."
            )
        if not 200 <= status < 300:
            message = None
            if isinstance(payload, dict):
                message = payload.get("message")
            detail = message or f"HTTP {status}"
            error_cls = NotFound if status == 404 else RequestRejected
            raise error_cls(
                f"Failed to {method} {url}. Response: {detail}",
                status=status,
            )
        return payload

    def get(self, path: str, params: dict | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, body: dict) -> Any:
        return self.request("POST", path, body=body)

    def patch(self, path: str, body: dict) -> Any:
        return self.request("PATCH", path, body=body)

    # ── Repository reads ────────────────────────────────────────────

    def get_repo(self, owner: str, name: str) -> dict:
        return self.get(f"/repos/{owner}/{name}")

    def get_default_branch(self, owner: str, name: str) -> str:
        return _field(self.get_repo(owner, name), "default_branch")

    def get_license(self, owner: str, name: str) -> str:
        repo = self.get_repo(owner, name)
        license_info = repo.get("license") or {}
        spdx_id = license_info.get("spdx_id")
        if not spdx_id:
            raise GhTrsError(f"Repository {owner}/{name} does not declare a license")
        return spdx_id

    def get_latest_commit_sha(self, owner: str, name: str, branch: str) -> str:
        branch_info = self.get(f"/repos/{owner}/{name}/branches/{branch}")
        return _field(_field(branch_info, "commit"), "sha")

    def get_user(self) -> dict:
        return self.get("/user")

    def get_readme_url(self, owner: str, name: str) -> str:
        return _field(self.get(f"/repos/{owner}/{name}/readme"), "html_url")

    def iter_files(self, owner: str, name: str, path: str, ref: str) -> Iterator[str]:
        """Yield every file path under ``path`` at ``ref``, recursing into directories."""
        entries = self.get(f"/repos/{owner}/{name}/contents/{path}", params={"ref": ref})
        if not isinstance(entries, list):
            raise GhTrsError(f"{path} in {owner}/{name} is not a directory")
        for entry in entries:
            kind = _field(entry, "type")
            if kind == "file":
                yield _field(entry, "path")
            elif kind == "dir":
                yield from self.iter_files(owner, name, _field(entry, "path"), ref)


def _field(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict) or payload.get(key) is None:
        raise GhTrsError(f"Unexpected GitHub response: missing '{key}'")
    return payload[key]
