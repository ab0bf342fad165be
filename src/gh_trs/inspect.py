"""Detect a workflow's language and language version from its content."""

from __future__ import annotations

import logging
import re
from typing import Callable

import yaml

from gh_trs.config.types import Language, LanguageType
from gh_trs.remote import fetch_raw_content

logger = logging.getLogger(__name__)

_WDL_BLOCK = re.compile(r"^(workflow|task) \w* \{$")
_NFL_PROCESS = re.compile(r"^process \w* \{$")
_SMK_RULE = re.compile(r"^rule \w*:$")
_WDL_VERSION = re.compile(r"^version \d\.\d$")

_SHEBANG_MARKERS = (
    ("cwl", LanguageType.CWL),
    ("cromwell", LanguageType.WDL),
    ("nextflow", LanguageType.NFL),
    ("snakemake", LanguageType.SMK),
)

DEFAULT_VERSIONS = {
    LanguageType.CWL: "v1.0",
    LanguageType.WDL: "1.0",
    LanguageType.NFL: "1.0",
    LanguageType.SMK: "1.0",
}


def inspect_wf_type_version(
    url: str,
    fetch: Callable[[str], str] = fetch_raw_content,
) -> Language:
    """Fetch a workflow file and sniff its language and version."""
    content = fetch(url)
    wf_type = inspect_wf_type(content)
    return Language(type=wf_type, version=inspect_wf_version(content, wf_type))


def inspect_wf_type(content: str) -> LanguageType | None:
    return check_by_shebang(content) or check_by_pattern(content)


def check_by_shebang(content: str) -> LanguageType | None:
    lines = content.splitlines()
    first_line = lines[0] if lines else ""
    if not first_line.startswith("#!"):
        return None
    for marker, lang in _SHEBANG_MARKERS:
        if marker in first_line:
            return lang
    return None


def check_by_pattern(content: str) -> LanguageType | None:
    for line in content.splitlines():
        if "cwlVersion" in line:
            return LanguageType.CWL
        if _WDL_BLOCK.match(line):
            return LanguageType.WDL
        if _NFL_PROCESS.match(line):
            return LanguageType.NFL
        if _SMK_RULE.match(line):
            return LanguageType.SMK
    return None


def inspect_wf_version(content: str, wf_type: LanguageType | None) -> str | None:
    if wf_type is None:
        return None
    if wf_type == LanguageType.CWL:
        return _cwl_version(content)
    if wf_type == LanguageType.WDL:
        return _wdl_version(content)
    if wf_type == LanguageType.NFL:
        return _nfl_version(content)
    return DEFAULT_VERSIONS[wf_type]


def _cwl_version(content: str) -> str:
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning("Failed to parse CWL document, assuming v1.0: %s", e)
        return DEFAULT_VERSIONS[LanguageType.CWL]
    if isinstance(doc, dict) and isinstance(doc.get("cwlVersion"), str):
        return doc["cwlVersion"]
    return DEFAULT_VERSIONS[LanguageType.CWL]


def _wdl_version(content: str) -> str:
    for line in content.splitlines():
        if _WDL_VERSION.match(line):
            return line.split()[1]
    return DEFAULT_VERSIONS[LanguageType.WDL]


def _nfl_version(content: str) -> str:
    for line in content.splitlines():
        if line == "nextflow.enable.dsl=2":
            return "DSL2"
    return DEFAULT_VERSIONS[LanguageType.NFL]
