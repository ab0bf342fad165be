"""GA4GH TRS 2.0.1 document types published by gh-trs.

Each type round-trips through ``from_dict``/``to_dict``. ``to_dict`` omits
absent optional fields so that presence and absence survive publication
(a FileWrapper without ``content`` means the file was not fetchable).
ServiceInfo uses the camelCase keys of the GA4GH service-info spec; the
tool documents use snake_case.
"""

from __future__ import annotations

import copy
import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from gh_trs.config.types import Config, FileType as ConfigFileType, LanguageType

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
SERVICE_TYPE = {"group": "org.ga4gh", "artifact": "gh-trs", "version": "2.0.1"}


def to_json(data) -> str:
    """Compact, deterministic JSON as published on the branch."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def gh_pages_url(owner: str, repo: str) -> str:
    return f"https://{owner}.github.io/{repo}"


class DescriptorType(str, Enum):
    CWL = "CWL"
    WDL = "WDL"
    NFL = "NFL"
    GALAXY = "GALAXY"
    SMK = "SMK"

    @classmethod
    def from_language(cls, language: LanguageType) -> "DescriptorType":
        return cls(language.value)

    @classmethod
    def parse(cls, value: str) -> "DescriptorType | str":
        """Published documents may carry types gh-trs never writes (e.g. PLAIN_CWL).

        Those are kept verbatim so republishing leaves them untouched.
        """
        try:
            return cls(value)
        except ValueError:
            return value


class FileType(str, Enum):
    TEST_FILE = "TEST_FILE"
    PRIMARY_DESCRIPTOR = "PRIMARY_DESCRIPTOR"
    SECONDARY_DESCRIPTOR = "SECONDARY_DESCRIPTOR"
    CONTAINERFILE = "CONTAINERFILE"
    OTHER = "OTHER"

    @classmethod
    def from_config(cls, file_type: ConfigFileType) -> "FileType":
        if file_type == ConfigFileType.PRIMARY:
            return cls.PRIMARY_DESCRIPTOR
        return cls.SECONDARY_DESCRIPTOR


# ── service-info ────────────────────────────────────────────────────


@dataclass
class ServiceInfo:
    id: str
    name: str
    organization: dict
    created_at: str
    updated_at: str
    version: str
    type: dict = field(default_factory=lambda: dict(SERVICE_TYPE))
    description: str | None = None
    contact_url: str | None = None
    documentation_url: str | None = None
    environment: str | None = None

    @classmethod
    def new_or_update(
        cls,
        existing: "ServiceInfo | None",
        config: Config,
        owner: str,
        repo: str,
        now: datetime | None = None,
    ) -> "ServiceInfo":
        """Build the service-info for this publish.

        createdAt survives from the published document; everything derived
        from owner/repo is recomputed so repository renames are picked up.
        """
        now = now or _utcnow()
        stamp = now.strftime(TIMESTAMP_FORMAT)
        return cls(
            id=f"io.github.{owner}.{repo}",
            name=f"{owner}/{repo}",
            type=dict(SERVICE_TYPE),
            description="The GA4GH TRS API generated by gh-trs (https://github.com/suecharo/gh-trs)",
            organization={"name": owner, "url": f"https://github.com/{owner}"},
            contact_url=None,
            documentation_url=f"{gh_pages_url(owner, repo)}/",
            created_at=existing.created_at if existing else stamp,
            updated_at=stamp,
            environment="prod",
            version=now.strftime("%Y%m%d%H%M%S"),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "ServiceInfo":
        return cls(
            id=data["id"],
            name=data["name"],
            type=data.get("type") or dict(SERVICE_TYPE),
            description=data.get("description"),
            organization=data.get("organization") or {},
            contact_url=data.get("contactUrl"),
            documentation_url=data.get("documentationUrl"),
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
            environment=data.get("environment"),
            version=data["version"],
        )

    def to_dict(self) -> dict:
        return _compact({
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "organization": self.organization,
            "contactUrl": self.contact_url,
            "documentationUrl": self.documentation_url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "environment": self.environment,
            "version": self.version,
        })

    def is_gh_trs(self) -> bool:
        return (
            self.type.get("artifact") == SERVICE_TYPE["artifact"]
            and self.type.get("version") == SERVICE_TYPE["version"]
        )


# ── toolClasses ─────────────────────────────────────────────────────


@dataclass
class ToolClass:
    id: str | None = "workflow"
    name: str | None = "Workflow"
    description: str | None = "A computational workflow"

    @classmethod
    def from_dict(cls, data: dict) -> "ToolClass":
        return cls(id=data.get("id"), name=data.get("name"), description=data.get("description"))

    def to_dict(self) -> dict:
        return _compact({"id": self.id, "name": self.name, "description": self.description})


# ── checksums and files ─────────────────────────────────────────────


@dataclass
class Checksum:
    checksum: str
    type: str = "sha256"

    @classmethod
    def from_text(cls, text: str) -> "Checksum":
        return cls(checksum=hashlib.sha256(text.encode("utf-8")).hexdigest())

    @classmethod
    def from_dict(cls, data: dict) -> "Checksum":
        return cls(checksum=data["checksum"], type=data.get("type", "sha256"))

    def to_dict(self) -> dict:
        return {"checksum": self.checksum, "type": self.type}


@dataclass
class FileWrapper:
    content: str | None = None
    checksum: list[Checksum] | None = None
    url: str | None = None

    @classmethod
    def from_content(cls, content: str, url: str | None = None) -> "FileWrapper":
        return cls(content=content, checksum=[Checksum.from_text(content)], url=url)

    def to_dict(self) -> dict:
        return _compact({
            "content": self.content,
            "checksum": [c.to_dict() for c in self.checksum] if self.checksum is not None else None,
            "url": self.url,
        })


@dataclass
class ToolFile:
    path: str | None = None
    file_type: FileType | None = None
    checksum: Checksum | None = None

    def to_dict(self) -> dict:
        return _compact({
            "path": self.path,
            "file_type": self.file_type.value if self.file_type else None,
            "checksum": self.checksum.to_dict() if self.checksum else None,
        })


# ── tools ───────────────────────────────────────────────────────────


@dataclass
class ToolVersion:
    url: str
    id: str
    author: list[str] | None = None
    name: str | None = None
    is_production: bool | None = None
    images: list | None = None
    descriptor_type: list[DescriptorType | str] | None = None
    containerfile: bool | None = None
    meta_version: str | None = None
    verified: bool | None = None
    verified_source: list[str] | None = None
    signed: bool | None = None
    included_apps: list[str] | None = None

    @classmethod
    def new(cls, config: Config, owner: str, repo: str, verified: bool) -> "ToolVersion":
        lang_type = config.workflow.language.type
        return cls(
            url=f"{gh_pages_url(owner, repo)}/tools/{config.id}/versions/{config.version}",
            id=config.version,
            author=[a.github_account for a in config.authors],
            name=config.workflow.name,
            descriptor_type=[DescriptorType.from_language(lang_type)] if lang_type else None,
            containerfile=False,
            verified=verified,
            signed=False,
        )

    @property
    def version(self) -> str:
        return self.id

    @classmethod
    def from_dict(cls, data: dict) -> "ToolVersion":
        descriptor_types = data.get("descriptor_type")
        return cls(
            url=data["url"],
            id=data["id"],
            author=data.get("author"),
            name=data.get("name"),
            is_production=data.get("is_production"),
            images=data.get("images"),
            descriptor_type=[DescriptorType.parse(d) for d in descriptor_types] if descriptor_types else None,
            containerfile=data.get("containerfile"),
            meta_version=data.get("meta_version"),
            verified=data.get("verified"),
            verified_source=data.get("verified_source"),
            signed=data.get("signed"),
            included_apps=data.get("included_apps"),
        )

    def to_dict(self) -> dict:
        return _compact({
            "author": self.author,
            "name": self.name,
            "url": self.url,
            "id": self.id,
            "is_production": self.is_production,
            "images": self.images,
            "descriptor_type": [getattr(d, "value", d) for d in self.descriptor_type] if self.descriptor_type else None,
            "containerfile": self.containerfile,
            "meta_version": self.meta_version,
            "verified": self.verified,
            "verified_source": self.verified_source,
            "signed": self.signed,
            "included_apps": self.included_apps,
        })


@dataclass
class Tool:
    url: str
    id: str
    organization: str
    toolclass: ToolClass
    versions: list[ToolVersion] = field(default_factory=list)
    aliases: list[str] | None = None
    name: str | None = None
    description: str | None = None
    meta_version: str | None = None
    has_checker: bool | None = None
    checker_url: str | None = None

    @classmethod
    def new(cls, config: Config, owner: str, repo: str) -> "Tool":
        return cls(
            url=f"{gh_pages_url(owner, repo)}/tools/{config.id}",
            id=config.id,
            organization=config.authors[0].github_account if config.authors else owner,
            name=config.workflow.name,
            toolclass=ToolClass(),
            description=config.workflow.readme,
            has_checker=False,
        )

    def clone(self) -> "Tool":
        return copy.deepcopy(self)

    def find_version(self, version: str) -> ToolVersion | None:
        for tv in self.versions:
            if tv.version == version:
                return tv
        return None

    def add_version(self, config: Config, owner: str, repo: str, verified: bool) -> ToolVersion:
        """Add the config's version, replacing a same-version entry in place."""
        tool_version = ToolVersion.new(config, owner, repo, verified)
        for i, existing in enumerate(self.versions):
            if existing.version == config.version:
                self.versions[i] = tool_version
                break
        else:
            self.versions.append(tool_version)
        self.name = config.workflow.name
        self.description = config.workflow.readme
        return tool_version

    @classmethod
    def from_dict(cls, data: dict) -> "Tool":
        return cls(
            url=data["url"],
            id=data["id"],
            aliases=data.get("aliases"),
            organization=data["organization"],
            name=data.get("name"),
            toolclass=ToolClass.from_dict(data.get("toolclass") or {}),
            description=data.get("description"),
            meta_version=data.get("meta_version"),
            has_checker=data.get("has_checker"),
            checker_url=data.get("checker_url"),
            versions=[ToolVersion.from_dict(v) for v in data.get("versions") or []],
        )

    def to_dict(self) -> dict:
        return _compact({
            "url": self.url,
            "id": self.id,
            "aliases": self.aliases,
            "organization": self.organization,
            "name": self.name,
            "toolclass": self.toolclass.to_dict(),
            "description": self.description,
            "meta_version": self.meta_version,
            "has_checker": self.has_checker,
            "checker_url": self.checker_url,
            "versions": [v.to_dict() for v in self.versions],
        })
