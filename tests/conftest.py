"""Shared test fixtures for gh-trs.

Nothing here touches the network: HTTP goes through FakeSession and the
Git Data API is replaced by an in-memory FakeGitData.
"""

import hashlib
import itertools
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
import requests

from gh_trs.config.io import read_config
from gh_trs.errors import ContentUnfetchable, NotFound, RequestRejected
from gh_trs.trs.api import PriorState
from gh_trs.trs.types import ServiceInfo, Tool, ToolClass

FIXTURES = Path(__file__).parent / "fixtures"
CONFIG_PATH = FIXTURES / "gh-trs-config.yml"
SHA = "3e7a2f2b0c9c5d1e4f6a8b0c2d4e6f8a0b1c2d3e"
RAW = f"https://raw.githubusercontent.com/suecharo/gh-trs/{SHA}"

NOW = datetime(2022, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
LATER = datetime(2022, 3, 2, 8, 30, 0, tzinfo=timezone.utc)


# ── HTTP fakes ───────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Route requests by (METHOD, url). Unrouted URLs answer 404."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        answer = self.routes.get((method, url))
        if isinstance(answer, Exception):
            raise answer
        if answer is None:
            return FakeResponse(404, {"message": "Not Found"})
        return answer

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


# ── Git Data fake ────────────────────────────────────────────────


class FakeGitData:
    """In-memory stand-in for GitDataClient over a single repository."""

    def __init__(self):
        self.branches: dict[str, str] = {}
        self.commits: dict[str, dict] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.created_refs: list[str] = []
        self.update_failures: list[int] = []
        self._ids = itertools.count(1)

    def _sha(self, kind):
        return hashlib.sha1(f"{kind}-{next(self._ids)}".encode()).hexdigest()

    def exists_branch(self, owner, repo, branch):
        return branch in self.branches

    def get_branch_tip(self, owner, repo, branch):
        if branch not in self.branches:
            raise NotFound(f"No branch {branch}", status=404)
        return self.branches[branch]

    def get_commit_tree(self, owner, repo, commit_sha):
        return self.commits[commit_sha]["tree"]

    def create_tree(self, owner, repo, entries, base_tree=None):
        files = dict(self.trees[base_tree]) if base_tree else {}
        files.update(entries)
        sha = self._sha("tree")
        self.trees[sha] = files
        return sha

    def create_commit(self, owner, repo, tree_sha, message, parent=None):
        sha = self._sha("cmt")
        self.commits[sha] = {"tree": tree_sha, "message": message, "parents": [parent] if parent else []}
        return sha

    def update_ref(self, owner, repo, branch, commit_sha):
        if self.update_failures:
            status = self.update_failures.pop(0)
            raise RequestRejected("Update is not a fast forward", status=status)
        self.branches[branch] = commit_sha

    def create_ref(self, owner, repo, branch, commit_sha):
        self.created_refs.append(branch)
        self.branches[branch] = commit_sha

    # helpers for assertions
    def files(self, branch="gh-pages"):
        return self.trees[self.commits[self.branches[branch]]["tree"]]

    def document(self, path, branch="gh-pages"):
        return json.loads(self.files(branch)[path])

    def parentless_commits(self):
        return [sha for sha, c in self.commits.items() if not c["parents"]]


class BranchEndpoint:
    """Reads the published registry straight from a FakeGitData branch."""

    def __init__(self, git, branch="gh-pages"):
        self.git = git
        self.branch = branch

    def _doc(self, path):
        if self.branch not in self.git.branches:
            return None
        raw = self.git.files(self.branch).get(f"{path}/index.json")
        return json.loads(raw) if raw is not None else None

    def fetch_prior_state(self, tool_id):
        service_info = self._doc("service-info")
        tool_classes = self._doc("toolClasses")
        tools = self._doc("tools")
        tool = self._doc(f"tools/{tool_id}")
        return PriorState(
            service_info=ServiceInfo.from_dict(service_info) if service_info else None,
            tool_classes=[ToolClass.from_dict(t) for t in tool_classes] if tool_classes is not None else None,
            tools=[Tool.from_dict(t) for t in tools] if tools is not None else None,
            tool=Tool.from_dict(tool) if tool else None,
        )


# ── content fake ─────────────────────────────────────────────────


class FakeFetch:
    def __init__(self, contents=None):
        self.contents = dict(contents or {})
        self.calls = []

    def __call__(self, url):
        self.calls.append(url)
        if url not in self.contents:
            raise ContentUnfetchable(f"Failed to fetch raw content from {url}", url=url)
        return self.contents[url]


# ── fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def config():
    return read_config(str(CONFIG_PATH))


@pytest.fixture
def contents():
    return {
        f"{RAW}/tests/CWL/wf/trimming_and_qc.cwl": (FIXTURES / "trimming_and_qc.cwl").read_text(),
        f"{RAW}/tests/CWL/wf/fastqc.cwl": "class: CommandLineTool\ncwlVersion: v1.0\n",
        f"{RAW}/tests/CWL/test/wf_params.json": '{"fastq_1": {"class": "File"}}',
    }


@pytest.fixture
def fetch(contents):
    return FakeFetch(contents)


@pytest.fixture
def git():
    return FakeGitData()


@pytest.fixture
def endpoint(git):
    return BranchEndpoint(git)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture(autouse=True)
def _no_network(monkeypatch):
    def _refuse(*args, **kwargs):
        raise AssertionError("tests must not touch the network")

    monkeypatch.setattr(requests.Session, "request", _refuse)
    monkeypatch.setattr(requests, "get", _refuse)
