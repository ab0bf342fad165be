"""Tests for the TRS documents, the published-state reader and the merge engine."""

import hashlib
import json
from dataclasses import replace

import pytest
import requests

from conftest import LATER, NOW, RAW, FakeFetch, FakeResponse, FakeSession
from gh_trs.config.types import FileType as ConfigFileType, LanguageType
from gh_trs.errors import ConfigError, GhTrsError, TransportError
from gh_trs.trs.api import PriorState, TrsEndpoint
from gh_trs.trs.response import RunEndpoint, TrsResponse, merge_tool_classes, merge_tools
from gh_trs.trs.types import (
    Checksum,
    DescriptorType,
    FileType,
    ServiceInfo,
    Tool,
    ToolClass,
    ToolVersion,
    to_json,
)

OWNER = "suecharo"
REPO = "gh-trs-registry"
BASE = f"https://{OWNER}.github.io/{REPO}"


def _sha256(text):
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ── Documents ────────────────────────────────────────────────────


class TestServiceInfo:
    def test_new_fields(self, config):
        si = ServiceInfo.new_or_update(None, config, OWNER, REPO, now=NOW)
        d = si.to_dict()
        assert d["id"] == "io.github.suecharo.gh-trs-registry"
        assert d["name"] == "suecharo/gh-trs-registry"
        assert d["type"] == {"group": "org.ga4gh", "artifact": "gh-trs", "version": "2.0.1"}
        assert d["organization"] == {"name": OWNER, "url": "https://github.com/suecharo"}
        assert d["documentationUrl"] == f"{BASE}/"
        assert d["createdAt"] == "2022-03-01T12:00:00Z"
        assert d["updatedAt"] == "2022-03-01T12:00:00Z"
        assert d["version"] == "20220301120000"
        assert "contactUrl" not in d

    def test_update_keeps_created_at(self, config):
        first = ServiceInfo.new_or_update(None, config, OWNER, REPO, now=NOW)
        second = ServiceInfo.new_or_update(first, config, OWNER, REPO, now=LATER)
        assert second.created_at == "2022-03-01T12:00:00Z"
        assert second.updated_at == "2022-03-02T08:30:00Z"

    def test_round_trip_camel_case(self, config):
        si = ServiceInfo.new_or_update(None, config, OWNER, REPO, now=NOW)
        assert ServiceInfo.from_dict(si.to_dict()) == si

    def test_is_gh_trs(self, config):
        si = ServiceInfo.new_or_update(None, config, OWNER, REPO, now=NOW)
        assert si.is_gh_trs()
        si.type = {"group": "org.ga4gh", "artifact": "trs", "version": "2.0.1"}
        assert not si.is_gh_trs()


class TestTool:
    def test_new(self, config):
        tool = Tool.new(config, OWNER, REPO)
        assert tool.url == f"{BASE}/tools/{config.id}"
        assert tool.organization == "suecharo"
        assert tool.toolclass == ToolClass()
        assert tool.versions == []

    def test_add_version(self, config):
        tool = Tool.new(config, OWNER, REPO)
        tv = tool.add_version(config, OWNER, REPO, verified=True)
        assert tv.id == "1.0.0"
        assert tv.url == f"{BASE}/tools/{config.id}/versions/1.0.0"
        assert tv.descriptor_type == [DescriptorType.CWL]
        assert tv.verified is True
        assert tool.versions == [tv]

    def test_add_same_version_replaces_in_place(self, config):
        tool = Tool.new(config, OWNER, REPO)
        tool.add_version(replace(config, version="0.9.0"), OWNER, REPO, verified=False)
        tool.add_version(config, OWNER, REPO, verified=False)
        tool.add_version(replace(config, version="1.1.0"), OWNER, REPO, verified=False)
        tool.add_version(config, OWNER, REPO, verified=True)
        assert [v.version for v in tool.versions] == ["0.9.0", "1.0.0", "1.1.0"]
        assert tool.find_version("1.0.0").verified is True

    def test_clone_is_independent(self, config):
        tool = Tool.new(config, OWNER, REPO)
        clone = tool.clone()
        clone.add_version(config, OWNER, REPO, verified=False)
        assert tool.versions == []

    def test_round_trip(self, config):
        tool = Tool.new(config, OWNER, REPO)
        tool.add_version(config, OWNER, REPO, verified=False)
        assert Tool.from_dict(json.loads(to_json(tool.to_dict()))) == tool


class TestSmallTypes:
    def test_checksum(self):
        c = Checksum.from_text("hello")
        assert c.to_dict() == {"checksum": _sha256("hello"), "type": "sha256"}

    def test_file_type_from_config(self):
        assert FileType.from_config(ConfigFileType.PRIMARY) == FileType.PRIMARY_DESCRIPTOR
        assert FileType.from_config(ConfigFileType.SECONDARY) == FileType.SECONDARY_DESCRIPTOR

    def test_descriptor_type_from_language(self):
        assert DescriptorType.from_language(LanguageType.NFL) == DescriptorType.NFL

    def test_descriptor_type_keeps_unknown_values(self):
        assert DescriptorType.parse("CWL") is DescriptorType.CWL
        assert DescriptorType.parse("PLAIN_CWL") == "PLAIN_CWL"

    def test_tool_version_with_foreign_descriptor_type(self):
        data = {"url": f"{BASE}/tools/x/versions/1", "id": "1", "descriptor_type": ["PLAIN_CWL", "CWL"]}
        tv = ToolVersion.from_dict(data)
        assert tv.descriptor_type == ["PLAIN_CWL", DescriptorType.CWL]
        assert tv.to_dict()["descriptor_type"] == ["PLAIN_CWL", "CWL"]

    def test_to_json_is_compact_and_keeps_unicode(self):
        assert to_json({"a": [1, 2], "b": "é"}) == '{"a":[1,2],"b":"é"}'


# ── Published-state reader ───────────────────────────────────────


class TestTrsEndpoint:
    def test_gh_pages_url(self):
        assert TrsEndpoint.gh_pages(OWNER, REPO, session=FakeSession()).url == f"{BASE}/"

    def test_from_tool_version_url(self):
        ep = TrsEndpoint.from_tool_version_url(
            f"{BASE}/tools/abc/versions/1.0.0", session=FakeSession(),
        )
        assert ep.url == f"{BASE}/"

    def test_from_tool_version_url_rejects_other_urls(self):
        with pytest.raises(GhTrsError):
            TrsEndpoint.from_tool_version_url(f"{BASE}/service-info", session=FakeSession())

    def test_absent_documents(self):
        ep = TrsEndpoint(BASE, session=FakeSession())
        prior = ep.fetch_prior_state("abc")
        assert prior == PriorState()

    def test_reads_documents(self, config):
        si = ServiceInfo.new_or_update(None, config, OWNER, REPO, now=NOW)
        tool = Tool.new(config, OWNER, REPO)
        session = FakeSession({
            ("GET", f"{BASE}/service-info"): FakeResponse(200, si.to_dict()),
            ("GET", f"{BASE}/toolClasses"): FakeResponse(200, [ToolClass().to_dict()]),
            ("GET", f"{BASE}/tools"): FakeResponse(200, [tool.to_dict()]),
            ("GET", f"{BASE}/tools/{config.id}"): FakeResponse(200, tool.to_dict()),
        })
        prior = TrsEndpoint(BASE, session=session).fetch_prior_state(config.id)
        assert prior.service_info == si
        assert prior.tool_classes == [ToolClass()]
        assert prior.tools == [tool]
        assert prior.tool == tool

    def test_transport_error_propagates(self):
        session = FakeSession({
            ("GET", f"{BASE}/service-info"): requests.ConnectionError("refused"),
        })
        with pytest.raises(TransportError):
            TrsEndpoint(BASE, session=session).fetch_prior_state("abc")

    def test_malformed_json_propagates(self):
        session = FakeSession({
            ("GET", f"{BASE}/service-info"): FakeResponse(200, text="<html>"),
        })
        with pytest.raises(GhTrsError, match="Malformed JSON"):
            TrsEndpoint(BASE, session=session).fetch_prior_state("abc")

    def test_unexpected_shape(self):
        session = FakeSession({
            ("GET", f"{BASE}/service-info"): FakeResponse(200, {"id": "x"}),
        })
        with pytest.raises(GhTrsError, match="unexpected shape"):
            TrsEndpoint(BASE, session=session).fetch_prior_state("abc")

    def test_foreign_descriptor_type(self):
        legacy = {
            "url": f"{BASE}/tools/legacy",
            "id": "legacy",
            "organization": OWNER,
            "toolclass": ToolClass().to_dict(),
            "versions": [{
                "url": f"{BASE}/tools/legacy/versions/1.0.0",
                "id": "1.0.0",
                "descriptor_type": ["PLAIN_CWL"],
            }],
        }
        session = FakeSession({("GET", f"{BASE}/tools"): FakeResponse(200, [legacy])})
        prior = TrsEndpoint(BASE, session=session).fetch_prior_state("abc")
        assert prior.tools[0].versions[0].descriptor_type == ["PLAIN_CWL"]

    def test_all_versions(self, config):
        tool = Tool.new(config, OWNER, REPO)
        tool.add_version(config, OWNER, REPO, verified=False)
        session = FakeSession({
            ("GET", f"{BASE}/tools/{config.id}"): FakeResponse(200, tool.to_dict()),
        })
        ep = TrsEndpoint(BASE, session=session)
        assert ep.all_versions(config.id) == ["1.0.0"]
        assert ep.all_versions("missing") == []
        assert ep.config_url(config.id, "1.0.0") == (
            f"{BASE}/tools/{config.id}/versions/1.0.0/gh-trs-config.json"
        )


# ── Merge engine ─────────────────────────────────────────────────


class TestMergeHelpers:
    def test_tool_classes_absent(self):
        assert merge_tool_classes(None) == [ToolClass()]

    def test_tool_classes_keeps_existing(self):
        other = ToolClass(id="tool", name="Tool", description="A tool")
        assert merge_tool_classes([other]) == [other, ToolClass()]
        assert merge_tool_classes([ToolClass(), other]) == [ToolClass(), other]

    def test_tools_replace_in_place(self, config):
        a = Tool.new(replace(config, id="00000000-0000-0000-0000-00000000000a"), OWNER, REPO)
        b = Tool.new(config, OWNER, REPO)
        c = Tool.new(replace(config, id="00000000-0000-0000-0000-00000000000c"), OWNER, REPO)
        new_b = b.clone()
        new_b.name = "renamed"
        merged = merge_tools([a, b, c], new_b)
        assert [t.id for t in merged] == [a.id, b.id, c.id]
        assert merged[1].name == "renamed"

    def test_tools_append(self, config):
        tool = Tool.new(config, OWNER, REPO)
        assert merge_tools(None, tool) == [tool]


class TestTrsResponse:
    def _build(self, config, fetch, prior=None, verified=False):
        return TrsResponse.build(config, OWNER, REPO, verified, prior, fetch=fetch, now=NOW)

    def test_path_grammar(self, config, fetch):
        contents = self._build(config, fetch).generate_contents()
        prefix = f"tools/{config.id}/versions/1.0.0"
        assert set(contents) == {
            "service-info/index.json",
            "toolClasses/index.json",
            "tools/index.json",
            f"tools/{config.id}/index.json",
            f"tools/{config.id}/versions/index.json",
            f"{prefix}/index.json",
            f"{prefix}/gh-trs-config.json",
            f"{prefix}/CWL/descriptor/index.json",
            f"{prefix}/CWL/files/index.json",
            f"{prefix}/CWL/tests/index.json",
            f"{prefix}/containerfile/index.json",
        }

    def test_documents(self, config, fetch, contents):
        docs = {k: json.loads(v) for k, v in self._build(config, fetch).generate_contents().items()}
        prefix = f"tools/{config.id}/versions/1.0.0"
        primary_url = f"{RAW}/tests/CWL/wf/trimming_and_qc.cwl"

        assert docs["toolClasses/index.json"] == [
            {"id": "workflow", "name": "Workflow", "description": "A computational workflow"}
        ]
        assert [t["id"] for t in docs["tools/index.json"]] == [config.id]
        assert docs[f"{prefix}/gh-trs-config.json"] == config.to_dict()
        assert docs[f"{prefix}/containerfile/index.json"] == []

        descriptor = docs[f"{prefix}/CWL/descriptor/index.json"]
        assert descriptor["url"] == primary_url
        assert descriptor["content"] == contents[primary_url]
        assert descriptor["checksum"] == [{"checksum": _sha256(contents[primary_url]), "type": "sha256"}]

        files = docs[f"{prefix}/CWL/files/index.json"]
        assert [f["file_type"] for f in files] == ["PRIMARY_DESCRIPTOR", "SECONDARY_DESCRIPTOR"]
        assert files[0]["path"] == primary_url
        assert files[0]["checksum"]["checksum"] == _sha256(contents[primary_url])

    def test_tests_are_serialized_test_cases(self, config, fetch):
        docs = self._build(config, fetch).generate_contents()
        tests = json.loads(docs[f"tools/{config.id}/versions/1.0.0/CWL/tests/index.json"])
        expected = to_json(config.workflow.testing[0].to_dict())
        assert tests == [{"content": expected, "checksum": [{"checksum": _sha256(expected), "type": "sha256"}]}]

    def test_degraded_secondary_file(self, config, contents):
        del contents[f"{RAW}/tests/CWL/wf/fastqc.cwl"]
        response = self._build(config, FakeFetch(contents))
        assert response.files[0].checksum is not None
        assert response.files[1].checksum is None
        assert "checksum" not in response.files[1].to_dict()

    def test_degraded_descriptor(self, config):
        response = self._build(config, FakeFetch())
        assert response.descriptor.to_dict() == {"url": f"{RAW}/tests/CWL/wf/trimming_and_qc.cwl"}
        assert all(f.checksum is None for f in response.files)

    def test_each_url_fetched_once(self, config, fetch):
        self._build(config, fetch)
        assert sorted(fetch.calls) == sorted({f.url for f in config.workflow.files})

    def test_requires_language_type(self, config, fetch):
        untyped = replace(config, workflow=replace(config.workflow, language=replace(
            config.workflow.language, type=None)))
        with pytest.raises(ConfigError, match="language.type"):
            self._build(untyped, fetch)

    def test_prior_tool_is_not_mutated(self, config, fetch):
        old = replace(config, version="0.9.0")
        prior_tool = Tool.new(old, OWNER, REPO)
        prior_tool.add_version(old, OWNER, REPO, verified=False)
        prior = PriorState(tools=[prior_tool], tool=prior_tool)
        response = self._build(config, fetch, prior=prior)
        assert [v.version for v in response.tool.versions] == ["0.9.0", "1.0.0"]
        assert [v.version for v in prior_tool.versions] == ["0.9.0"]

    def test_idempotent_contents(self, config, fetch):
        first = self._build(config, fetch).generate_contents()
        second = self._build(config, fetch).generate_contents()
        assert first == second


class TestRunEndpoint:
    def _stale_site(self, config):
        """A Pages site still serving a 0.9.0-only registry."""
        old = replace(config, version="0.9.0")
        tool = Tool.new(old, OWNER, REPO)
        tool.add_version(old, OWNER, REPO, verified=False)
        si = ServiceInfo.new_or_update(None, old, OWNER, REPO, now=NOW)
        return TrsEndpoint(BASE, session=FakeSession({
            ("GET", f"{BASE}/service-info"): FakeResponse(200, si.to_dict()),
            ("GET", f"{BASE}/tools"): FakeResponse(200, [tool.to_dict()]),
            ("GET", f"{BASE}/tools/{config.id}"): FakeResponse(200, tool.to_dict()),
        }))

    def test_falls_back_to_published_state(self, config):
        prior = RunEndpoint(self._stale_site(config)).fetch_prior_state(config.id)
        assert [v.version for v in prior.tool.versions] == ["0.9.0"]
        assert prior.service_info.created_at == "2022-03-01T12:00:00Z"
        assert prior.tool_classes is None

    def test_recorded_state_wins(self, config, fetch):
        endpoint = RunEndpoint(self._stale_site(config))
        first = TrsResponse.build(
            config, OWNER, REPO, False, endpoint.fetch_prior_state(config.id), fetch=fetch, now=LATER,
        )
        endpoint.record(first)

        second = replace(config, version="2.0.0")
        response = TrsResponse.build(
            second, OWNER, REPO, False, endpoint.fetch_prior_state(config.id), fetch=fetch, now=LATER,
        )
        assert [v.version for v in response.tool.versions] == ["0.9.0", "1.0.0", "2.0.0"]
        assert [v.version for v in response.tools[0].versions] == ["0.9.0", "1.0.0", "2.0.0"]
        assert response.service_info.created_at == "2022-03-01T12:00:00Z"
        assert response.tool_classes == [ToolClass()]

    def test_unrecorded_tool_comes_from_site(self, config, fetch):
        endpoint = RunEndpoint(self._stale_site(config))
        other = replace(config, id="5f1e2d3c-4b5a-4978-8695-a4b3c2d1e0f9")
        endpoint.record(TrsResponse.build(other, OWNER, REPO, False, fetch=fetch, now=NOW))
        prior = endpoint.fetch_prior_state(config.id)
        assert [v.version for v in prior.tool.versions] == ["0.9.0"]
        assert [t.id for t in prior.tools] == [other.id]

    def test_recorded_state_is_a_copy(self, config, fetch):
        endpoint = RunEndpoint(TrsEndpoint(BASE, session=FakeSession()))
        response = TrsResponse.build(config, OWNER, REPO, False, fetch=fetch, now=NOW)
        endpoint.record(response)
        response.tool.versions.clear()
        prior = endpoint.fetch_prior_state(config.id)
        assert [v.version for v in prior.tool.versions] == ["1.0.0"]
