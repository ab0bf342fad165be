"""gh-trs config: the workflow descriptor that drives one publish."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from urllib.parse import urlparse

from gh_trs.errors import ConfigError


class LanguageType(str, Enum):
    CWL = "CWL"
    WDL = "WDL"
    NFL = "NFL"
    SMK = "SMK"


class FileType(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class TestFileType(str, Enum):
    WF_PARAMS = "wf_params"
    WF_ENGINE_PARAMS = "wf_engine_params"
    OTHER = "other"

    __test__ = False


def _require(data: dict, key: str, where: str):
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: expected a mapping, got {type(data).__name__}")
    if key not in data:
        raise ConfigError(f"{where}: missing required field '{key}'")
    return data[key]


def _enum(enum_cls, value, where: str):
    try:
        return enum_cls(value)
    except ValueError:
        valid = ", ".join(e.value for e in enum_cls)
        raise ConfigError(f"{where}: invalid value '{value}' (valid: {valid})")


def target_from_url(url: str) -> str:
    """Default target path: the last segment of the URL path."""
    name = PurePosixPath(urlparse(url).path).name
    if not name:
        raise ConfigError(f"Cannot derive a file name from URL: {url}")
    return name


@dataclass(frozen=True)
class Author:
    github_account: str
    name: str | None = None
    affiliation: str | None = None
    orcid: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Author":
        return cls(
            github_account=str(_require(data, "github_account", "authors[]")),
            name=data.get("name"),
            affiliation=data.get("affiliation"),
            orcid=data.get("orcid"),
        )

    def to_dict(self) -> dict:
        return {
            "github_account": self.github_account,
            "name": self.name,
            "affiliation": self.affiliation,
            "orcid": self.orcid,
        }


@dataclass(frozen=True)
class Language:
    type: LanguageType | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "Language":
        data = data or {}
        raw_type = data.get("type")
        lang_type = _enum(LanguageType, raw_type, "workflow.language.type") if raw_type else None
        version = data.get("version")
        return cls(type=lang_type, version=str(version) if version is not None else None)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value if self.type else None,
            "version": self.version,
        }


@dataclass(frozen=True)
class File:
    url: str
    target: str
    type: FileType

    @classmethod
    def from_dict(cls, data: dict) -> "File":
        url = str(_require(data, "url", "workflow.files[]"))
        return cls(
            url=url,
            target=str(data.get("target") or target_from_url(url)),
            type=_enum(FileType, _require(data, "type", "workflow.files[]"), "workflow.files[].type"),
        )

    def to_dict(self) -> dict:
        return {"url": self.url, "target": self.target, "type": self.type.value}


@dataclass(frozen=True)
class TestFile:
    url: str
    target: str
    type: TestFileType

    __test__ = False

    @classmethod
    def from_dict(cls, data: dict) -> "TestFile":
        url = str(_require(data, "url", "workflow.testing[].files[]"))
        return cls(
            url=url,
            target=str(data.get("target") or target_from_url(url)),
            type=_enum(
                TestFileType,
                _require(data, "type", "workflow.testing[].files[]"),
                "workflow.testing[].files[].type",
            ),
        )

    def to_dict(self) -> dict:
        return {"url": self.url, "target": self.target, "type": self.type.value}


@dataclass(frozen=True)
class Testing:
    id: str
    files: tuple[TestFile, ...] = ()

    __test__ = False

    @classmethod
    def from_dict(cls, data: dict) -> "Testing":
        files = _require(data, "files", "workflow.testing[]") or []
        return cls(
            id=str(_require(data, "id", "workflow.testing[]")),
            files=tuple(TestFile.from_dict(f) for f in files),
        )

    @classmethod
    def default(cls) -> "Testing":
        """Placeholder test case written into new templates."""
        return cls(
            id="test_1",
            files=(
                TestFile(
                    url="https://example.com/path/to/wf_params.json",
                    target="wf_params.json",
                    type=TestFileType.WF_PARAMS,
                ),
                TestFile(
                    url="https://example.com/path/to/wf_engine_params.json",
                    target="wf_engine_params.json",
                    type=TestFileType.WF_ENGINE_PARAMS,
                ),
                TestFile(
                    url="https://example.com/path/to/data.fq",
                    target="data.fq",
                    type=TestFileType.OTHER,
                ),
            ),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "files": [f.to_dict() for f in self.files]}


@dataclass(frozen=True)
class Workflow:
    name: str
    readme: str
    language: Language
    files: tuple[File, ...]
    testing: tuple[Testing, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "Workflow":
        return cls(
            name=str(_require(data, "name", "workflow")),
            readme=str(_require(data, "readme", "workflow")),
            language=Language.from_dict(data.get("language")),
            files=tuple(File.from_dict(f) for f in (_require(data, "files", "workflow") or [])),
            testing=tuple(Testing.from_dict(t) for t in (data.get("testing") or [])),
        )

    def primary_wf(self) -> File:
        """Return the single primary file."""
        primaries = [f for f in self.files if f.type == FileType.PRIMARY]
        if len(primaries) != 1:
            raise ConfigError(
                f"Workflow '{self.name}' must have exactly one primary file, found {len(primaries)}"
            )
        return primaries[0]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "readme": self.readme,
            "language": self.language.to_dict(),
            "files": [f.to_dict() for f in self.files],
            "testing": [t.to_dict() for t in self.testing],
        }


@dataclass(frozen=True)
class Config:
    """A gh-trs config: one version of one workflow."""

    id: str
    version: str
    license: str
    authors: tuple[Author, ...]
    workflow: Workflow = field(repr=False)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        raw_id = str(_require(data, "id", "config"))
        try:
            wf_id = str(uuid.UUID(raw_id))
        except ValueError:
            raise ConfigError(f"config: id '{raw_id}' is not a valid UUID")
        return cls(
            id=wf_id,
            version=str(_require(data, "version", "config")),
            license=str(_require(data, "license", "config")),
            authors=tuple(Author.from_dict(a) for a in (_require(data, "authors", "config") or [])),
            workflow=Workflow.from_dict(_require(data, "workflow", "config")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "version": self.version,
            "license": self.license,
            "authors": [a.to_dict() for a in self.authors],
            "workflow": self.workflow.to_dict(),
        }

    @property
    def label(self) -> str:
        return f"workflow_id: {self.id}, version: {self.version}"
